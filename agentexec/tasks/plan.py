# agentexec/tasks/plan.py

from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, model_validator

from agentexec.tasks.schema import Task


class TaskPlan(BaseModel):
    """
    Ordered batch of tasks, as handed over by the planner or read from YAML.
    """
    tasks: List[Task]

    @model_validator(mode='after')
    def unique_ids(self):
        ids = [t.id for t in self.tasks]
        if len(ids) != len(set(ids)):
            raise ValueError("All task ids must be unique within a plan")
        return self


def load_plan(path: Path) -> TaskPlan:
    """
    Read a YAML document of the form ``{"tasks": [...]}`` (or a bare list) into a TaskPlan.
    """
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if isinstance(data, list):
        data = {"tasks": data}
    return TaskPlan.model_validate(data)
