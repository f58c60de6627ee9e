from typing import Any, Mapping

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import (
    BooleanField,
    DateField,
    DecimalField,
    IntegerField,
    PasswordField,
    SelectField,
    StringField,
    TextAreaField,
)
from wtforms.validators import (
    DataRequired,
    Email,
    EqualTo,
    Length,
    NumberRange,
    Optional,
    Regexp,
    ValidationError,
)

from models.project import ProjectStatus, ProjectType
from models.task import TASK_PRIORITY_CHOICES, TASK_STATUS_CHOICES

PROJECT_TYPE_CHOICES = [(value.value, value.value) for value in ProjectType]
PROJECT_STATUS_CHOICES = [(value.value, value.value) for value in ProjectStatus]


def form_from_payload(form_class, payload: Mapping[str, Any], **kwargs):
    """Build a form from a JSON payload.

    Only scalar values are fed to the form; fields missing from the payload
    keep no raw data so ``Optional`` validators skip them.
    """
    formdata = MultiDict()
    for key, value in (payload or {}).items():
        if value is None or isinstance(value, (list, dict)):
            continue
        formdata.add(key, value if isinstance(value, str) else str(value))
    return form_class(formdata=formdata, meta={"csrf": False}, **kwargs)


def submitted_values(form: FlaskForm, payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return validated values for the fields present in ``payload``.

    Explicit ``None`` values are kept so a client can clear a field.
    """
    values: dict[str, Any] = {}
    for name, field in form._fields.items():
        if name not in payload:
            continue
        if payload[name] is None:
            values[name] = None
            continue
        values[name] = field.data
    return values


class LoginForm(FlaskForm):
    username = StringField("Username", [DataRequired()])
    password = PasswordField("Password", [DataRequired()])


class ProjectForm(FlaskForm):
    name = StringField("Name", [DataRequired(), Length(max=255)])
    client = StringField("Client", [DataRequired(), Length(max=255)])
    type = SelectField("Type", choices=PROJECT_TYPE_CHOICES, validators=[DataRequired()])
    status = SelectField("Status", choices=PROJECT_STATUS_CHOICES, validators=[Optional()])
    priority = SelectField("Priority", choices=TASK_PRIORITY_CHOICES, validators=[Optional()])
    description = TextAreaField("Description", [Optional()])
    start_date = DateField("Start date", [DataRequired()])
    end_date = DateField("End date", [DataRequired()])
    estimated_budget = DecimalField("Estimated budget", [Optional(), NumberRange(min=0)], places=2)
    actual_budget = DecimalField("Actual budget", [Optional(), NumberRange(min=0)], places=2)
    notes = TextAreaField("Notes", [Optional()])
    client_user_id = IntegerField("Client user", [Optional()])

    def validate_end_date(self, field):
        if self.start_date.data and field.data and field.data < self.start_date.data:
            raise ValidationError("End date must be on or after the start date.")


class ProjectUpdateForm(ProjectForm):
    name = StringField("Name", [Optional(), Length(max=255)])
    client = StringField("Client", [Optional(), Length(max=255)])
    type = SelectField("Type", choices=PROJECT_TYPE_CHOICES, validators=[Optional()])
    start_date = DateField("Start date", [Optional()])
    end_date = DateField("End date", [Optional()])


class TaskForm(FlaskForm):
    name = StringField("Name", [DataRequired(), Length(max=255)])
    description = TextAreaField("Description", [Optional()])
    assignee = StringField("Assignee", [Optional(), Length(max=255)])
    status = SelectField("Status", choices=TASK_STATUS_CHOICES, validators=[Optional()])
    priority = SelectField("Priority", choices=TASK_PRIORITY_CHOICES, validators=[Optional()])
    parent_id = StringField("Parent task", [Optional(), Length(max=64)])
    position = IntegerField("Position", [Optional()])
    start_date = DateField("Start date", [Optional()])
    end_date = DateField("End date", [Optional()])


class TaskUpdateForm(TaskForm):
    name = StringField("Name", [Optional(), Length(max=255)])


class UserForm(FlaskForm):
    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.current_user = user

    username = StringField(
        "Username",
        validators=[
            DataRequired(message="Username is required."),
            Length(max=80, message="Username must be 80 characters or fewer."),
            Regexp(
                r"^[A-Za-z0-9_.-]+$",
                message="Username may only include letters, numbers, dots, hyphens, and underscores.",
            ),
        ],
    )
    name = StringField("Name", [DataRequired(), Length(max=80)])
    email = StringField("Email", [DataRequired(), Email(), Length(max=120)])
    password = PasswordField(
        "Password",
        validators=[
            DataRequired(message="Password is required."),
            Length(min=8, message="Password must be at least 8 characters."),
            Regexp(
                r"^(?=.*[A-Za-z])(?=.*\d).+$",
                message="Password must include at least one letter and one number.",
            ),
        ],
    )
    department = StringField("Department", [Optional(), Length(max=80)])
    role_id = IntegerField("Role", [DataRequired(message="A role is required.")])

    def validate_username(self, field):
        from models.user import User

        if not field.data:
            return
        existing = User.query.filter_by(username=field.data).first()
        if existing and (not self.current_user or existing.id != self.current_user.id):
            raise ValidationError("This username is already in use.")

    def validate_email(self, field):
        from models.user import User

        if not field.data:
            return
        existing = User.query.filter_by(email=field.data).first()
        if existing and (not self.current_user or existing.id != self.current_user.id):
            raise ValidationError("This email is already in use.")

    def validate_role_id(self, field):
        from database import db
        from models.role import Role

        if field.data is not None and db.session.get(Role, field.data) is None:
            raise ValidationError("Invalid role.")


class UserUpdateForm(UserForm):
    username = StringField(
        "Username",
        validators=[
            Optional(),
            Length(max=80, message="Username must be 80 characters or fewer."),
            Regexp(
                r"^[A-Za-z0-9_.-]+$",
                message="Username may only include letters, numbers, dots, hyphens, and underscores.",
            ),
        ],
    )
    name = StringField("Name", [Optional(), Length(max=80)])
    email = StringField("Email", [Optional(), Email(), Length(max=120)])
    password = None
    role_id = IntegerField("Role", [Optional()])
    is_active = BooleanField("Active", false_values=("false", "False", "0", ""))


class PasswordChangeForm(FlaskForm):
    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.current_user = user

    current_password = PasswordField(
        "Current Password",
        validators=[DataRequired(message="Current password is required.")],
    )
    new_password = PasswordField(
        "New Password",
        validators=[
            DataRequired(message="New password is required."),
            Length(min=8, message="Password must be at least 8 characters."),
            Regexp(
                r"^(?=.*[A-Za-z])(?=.*\d).+$",
                message="Password must include at least one letter and one number.",
            ),
        ],
    )
    confirm_password = PasswordField(
        "Confirm New Password",
        validators=[
            DataRequired(message="Please confirm the new password."),
            EqualTo("new_password", message="Passwords must match."),
        ],
    )


class RoleForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(message="Role name is required."),
            Length(max=80),
            Regexp(r"^[a-z_]+$", message="Role names may only include lowercase letters and underscores."),
        ],
    )
    display_name = StringField("Display name", [DataRequired(), Length(max=120)])
    description = TextAreaField("Description", [Optional()])
    priority = IntegerField("Priority", [Optional(), NumberRange(min=0)])

    def validate_name(self, field):
        from models.role import Role

        if field.data and Role.query.filter_by(name=field.data).first():
            raise ValidationError("Role already exists.")


class RoleUpdateForm(FlaskForm):
    display_name = StringField("Display name", [Optional(), Length(max=120)])
    description = TextAreaField("Description", [Optional()])
    priority = IntegerField("Priority", [Optional(), NumberRange(min=0)])


SELF_SERVICE_ROLE_CHOICES = [("technician", "technician"), ("client", "client")]


class RegistrationForm(UserForm):
    role_id = None
    role = SelectField("Role", choices=SELF_SERVICE_ROLE_CHOICES, validators=[Optional()])
