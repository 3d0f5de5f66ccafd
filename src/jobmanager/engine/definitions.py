"""Job definitions loaded from a YAML file.

A definitions file lists the jobs an application registers at startup.
Each entry names its bound object by import path; the object is created
without arguments and must expose ``run() -> int``.

Example file:

    jobs:
      - id: nightly-backup
        target: myapp.jobs:Backup
        first_run: "2026-01-01T02:00:00+00:00"
        interval: {days: 1}
        kind: repeatable
      - id: send-welcome
        target: myapp.jobs:Welcome
        kind: unique
"""

import importlib
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from jobmanager.engine.errors import BindingError, InvalidJobError
from jobmanager.engine.job import Job, create_job
from jobmanager.engine.schedule import utcnow
from jobmanager.engine.types import DateOffset, JobKind

logger = logging.getLogger(__name__)


def resolve_target(target: str) -> Any:
    """Import an attribute given as ``package.module:Name``.

    Args:
        target: Import path; dotted names after the colon walk attributes.

    Returns:
        The resolved attribute.

    Raises:
        BindingError: If the path is malformed or cannot be imported.
    """
    module_name, sep, attr_path = target.partition(":")
    if not sep or not module_name or not attr_path:
        raise BindingError(f"Invalid target '{target}', expected 'module:Name'")

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise BindingError(f"Cannot import module '{module_name}'") from e

    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise BindingError(f"'{target}' not found") from e
    return obj


class JobDefinition(BaseModel):
    """One job entry of a definitions file.

    Attributes:
        id: Job identifier.
        target: Import path of the bound object's type.
        first_run: First execution time (defaults to now).
        interval: Offset between runs.
        kind: Unique or repeatable.
    """

    id: str = Field(..., min_length=1, description="Job identifier")
    target: str = Field(..., description="Import path of the bound object's type")
    first_run: datetime | None = Field(default=None, description="First execution time")
    interval: DateOffset = Field(default_factory=DateOffset, description="Offset between runs")
    kind: JobKind = Field(default=JobKind.UNIQUE, description="Unique or repeatable")

    def build(self) -> Job:
        """Instantiate the target and create the job.

        Raises:
            BindingError: If the target cannot be imported or bound.
            InvalidJobError: If a repeatable job has a non-positive interval.
        """
        factory = resolve_target(self.target)
        try:
            bound_object = factory()
        except TypeError as e:
            raise BindingError(f"Cannot instantiate '{self.target}' without arguments") from e

        return create_job(
            self.id,
            bound_object,
            self.first_run or utcnow(),
            self.interval,
            self.kind,
        )


def load_definitions(path: str | Path) -> list[JobDefinition]:
    """Load job definitions from a YAML file.

    Args:
        path: Definitions file. A missing file yields no definitions.

    Returns:
        Validated definitions, in file order.

    Raises:
        InvalidJobError: If the file content is not a valid definitions list.
    """
    path = Path(path)
    if not path.exists():
        return []

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data:
        return []
    if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
        raise InvalidJobError(f"{path}: expected a top-level 'jobs' list")

    definitions = []
    for index, entry in enumerate(data["jobs"]):
        try:
            definitions.append(JobDefinition.model_validate(entry))
        except ValidationError as e:
            raise InvalidJobError(f"{path}: invalid job #{index + 1}: {e}") from e

    logger.debug(f"Loaded {len(definitions)} job definition(s) from {path}")
    return definitions
