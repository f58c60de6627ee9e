import pytest

from services.task_tree import TaskTree, ValidationError


def _tree_with(*tasks):
    tree = TaskTree()
    created = [tree.add_task(task) for task in tasks]
    return tree, created


def test_empty_task_list_has_zero_progress():
    assert TaskTree().calculate_progress() == 0
    assert TaskTree([]).calculate_progress() == 0


def test_add_task_applies_defaults():
    tree, (first, second) = _tree_with({"name": "Survey"}, {"name": "Design"})

    assert first["status"] == "not-started"
    assert first["priority"] == "medium"
    assert first["parent_id"] is None
    assert first["position"] == 0
    assert second["position"] == 1
    assert first["id"] != second["id"]
    assert first["created_at"] == first["updated_at"]


def test_add_task_position_counts_only_top_level_tasks():
    tree, (parent,) = _tree_with({"name": "Foundations"})
    tree.add_task({"name": "Dig", "parent_id": parent["id"]})

    task = tree.add_task({"name": "Framing"})

    assert task["position"] == 1


def test_add_task_keeps_explicit_values_but_not_identity():
    tree = TaskTree()
    task = tree.add_task(
        {"name": "Roof", "id": "chosen", "status": "in-progress", "priority": "high", "position": 0}
    )

    assert task["id"] != "chosen"
    assert task["status"] == "in-progress"
    assert task["priority"] == "high"
    assert task["position"] == 0


def test_add_subtask_with_unknown_parent_fails_without_mutation():
    tree, _ = _tree_with({"name": "Survey"})
    before = [dict(task) for task in tree.tasks]

    with pytest.raises(ValidationError):
        tree.add_task({"name": "Orphan", "parent_id": "missing"})

    assert tree.tasks == before


def test_add_subtask_of_subtask_is_rejected():
    tree, (parent,) = _tree_with({"name": "Electrical"})
    child = tree.add_task({"name": "Wiring", "parent_id": parent["id"]})

    with pytest.raises(ValidationError):
        tree.add_task({"name": "Too deep", "parent_id": child["id"]})
    assert len(tree) == 2


def test_adding_started_subtask_moves_parent_in_progress():
    tree, (parent,) = _tree_with({"name": "Plumbing"})

    tree.add_task({"name": "Pipes", "parent_id": parent["id"], "status": "completed"})
    tree.add_task({"name": "Fixtures", "parent_id": parent["id"]})

    assert tree.get_task(parent["id"])["status"] == "in-progress"


def test_delete_task_cascades_to_subtasks():
    tree, (parent, other) = _tree_with({"name": "Walls"}, {"name": "Paint"})
    tree.add_task({"name": "Studs", "parent_id": parent["id"]})
    tree.add_task({"name": "Drywall", "parent_id": parent["id"]})

    removed = tree.delete_task(parent["id"])

    assert len(removed) == 3
    assert [task["id"] for task in tree.tasks] == [other["id"]]
    assert all(task.get("parent_id") != parent["id"] for task in tree.tasks)


def test_deleting_subtask_reevaluates_parent():
    tree, (parent,) = _tree_with({"name": "Windows"})
    done = tree.add_task({"name": "Frames", "parent_id": parent["id"], "status": "completed"})
    pending = tree.add_task({"name": "Glass", "parent_id": parent["id"]})
    assert tree.get_task(parent["id"])["status"] == "in-progress"

    tree.delete_task(pending["id"])

    assert tree.get_task(parent["id"])["status"] == "completed"
    assert tree.get_task(done["id"]) is not None


def test_completing_every_subtask_completes_parent():
    tree, (parent,) = _tree_with({"name": "Kitchen"})
    first = tree.add_task({"name": "Cabinets", "parent_id": parent["id"]})
    second = tree.add_task({"name": "Counters", "parent_id": parent["id"]})

    tree.update_task(first["id"], {"status": "completed"})
    assert tree.get_task(parent["id"])["status"] == "in-progress"

    tree.update_task(second["id"], {"status": "completed"})
    assert tree.get_task(parent["id"])["status"] == "completed"

    tree.update_task(second["id"], {"status": "not-started"})
    assert tree.get_task(parent["id"])["status"] == "in-progress"


def test_on_hold_subtask_counts_as_started():
    tree, (parent,) = _tree_with({"name": "Garden"})
    child = tree.add_task({"name": "Beds", "parent_id": parent["id"]})

    tree.update_task(child["id"], {"status": "on-hold"})

    assert tree.get_task(parent["id"])["status"] == "in-progress"


def test_parent_status_set_directly_is_overwritten_by_next_subtask_change():
    tree, (parent,) = _tree_with({"name": "Deck"})
    child = tree.add_task({"name": "Boards", "parent_id": parent["id"]})

    tree.update_task(parent["id"], {"status": "completed"})
    assert tree.get_task(parent["id"])["status"] == "completed"

    tree.update_task(child["id"], {"status": "in-progress"})
    assert tree.get_task(parent["id"])["status"] == "in-progress"


def test_update_task_ignores_structural_fields():
    tree, (parent, other) = _tree_with({"name": "Roof"}, {"name": "Gutters"})
    child = tree.add_task({"name": "Shingles", "parent_id": parent["id"]})
    created_at = child["created_at"]

    tree.update_task(
        child["id"],
        {"id": "new-id", "parent_id": other["id"], "created_at": "x", "assignee": "Sam"},
    )

    updated = tree.get_task(child["id"])
    assert updated["parent_id"] == parent["id"]
    assert updated["created_at"] == created_at
    assert updated["assignee"] == "Sam"


def test_update_and_delete_unknown_ids_are_noops():
    tree, (first,) = _tree_with({"name": "Inspection", "status": "in-progress"})
    before = [dict(task) for task in tree.tasks]
    progress = tree.calculate_progress()

    assert tree.update_task("missing", {"status": "completed"}) is None
    assert tree.delete_task("missing") == []

    assert tree.tasks == before
    assert tree.calculate_progress() == progress


def test_progress_uses_subtask_ratio_for_parents():
    tree, (parent,) = _tree_with({"name": "Bathroom", "status": "completed"})
    tree.add_task({"name": "Tiles", "parent_id": parent["id"], "status": "completed"})
    tree.add_task({"name": "Tub", "parent_id": parent["id"]})
    # Parent's own status is ignored once it has sub-tasks.
    tree.get_task(parent["id"])["status"] = "completed"

    assert tree.calculate_progress() == 50


def test_progress_weights_leaf_statuses():
    tree, _ = _tree_with(
        {"name": "Permit", "status": "completed"},
        {"name": "Order", "status": "in-progress"},
    )

    assert tree.calculate_progress() == 75


def test_progress_treats_on_hold_and_not_started_as_zero():
    tree, _ = _tree_with(
        {"name": "A", "status": "completed"},
        {"name": "B", "status": "on-hold"},
        {"name": "C"},
    )

    assert tree.calculate_progress() == 33


def test_progress_rounds_half_up():
    tree, (parent,) = _tree_with({"name": "Landscaping"})
    tree.add_task({"name": "Step 1", "parent_id": parent["id"], "status": "completed"})
    for index in range(2, 9):
        tree.add_task({"name": f"Step {index}", "parent_id": parent["id"]})

    # 1 of 8 sub-tasks done is 12.5%
    assert tree.calculate_progress() == 13


def test_reorder_sorts_top_level_tasks_and_ignores_unknown_ids():
    tree, (task_a, task_b) = _tree_with({"name": "A"}, {"name": "B"})

    tree.reorder_tasks(
        [
            {"id": task_a["id"], "position": 2},
            {"id": task_b["id"], "position": 1},
            {"id": "unknown", "position": 0},
        ]
    )

    names = [task["name"] for task in tree.top_level_tasks()]
    assert names == ["B", "A"]
    assert tree.get_task(task_a["id"])["position"] == 2


def test_reorder_keeps_subtask_slots_and_is_stable():
    tree, (task_a, task_b, task_c) = _tree_with({"name": "A"}, {"name": "B"}, {"name": "C"})
    child = tree.add_task({"name": "A1", "parent_id": task_a["id"], "position": 99})
    child_index = tree.tasks.index(child)

    tree.reorder_tasks([{"id": task_c["id"], "position": 0}, {"id": task_a["id"], "position": 1}])

    assert [task["name"] for task in tree.top_level_tasks()] == ["C", "A", "B"]
    assert tree.tasks[child_index]["id"] == child["id"]
    assert tree.get_task(child["id"])["position"] == 99


def test_reorder_does_not_change_progress_or_status():
    tree, (task_a, task_b) = _tree_with({"name": "A", "status": "completed"}, {"name": "B"})
    progress = tree.calculate_progress()

    tree.reorder_tasks([{"id": task_b["id"], "position": 0}, {"id": task_a["id"], "position": 1}])

    assert tree.calculate_progress() == progress
    assert tree.get_task(task_a["id"])["status"] == "completed"


def test_operations_mutate_the_given_list():
    tasks = []
    tree = TaskTree(tasks)

    task = tree.add_task({"name": "Shared"})
    tree.delete_task(task["id"])

    assert tree.tasks is tasks
    assert tasks == []
