"""Immutable domain snapshots with strict validation and camelCase interchange serialization."""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields, is_dataclass, replace
from datetime import UTC, date, datetime
from enum import Enum, StrEnum
from typing import Final, NoReturn, TypeVar, cast

from mint_portal.domain.errors import MissingDataError, ModelValidationError

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TEnum = TypeVar("TEnum", bound=Enum)
T = TypeVar("T")

_MAX_TEXT = 8192
_DURATION_TOLERANCE_SECONDS: Final[float] = 1.0
_SNAKE_BOUNDARY = re.compile(r"_([a-z0-9])")


class ProjectStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class LayerType(StrEnum):
    RELEASE = "release"
    LAYER = "layer"
    PRIVATE = "private"


class BuildStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_BUILD_STATUSES


class StageStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STAGE_STATUSES


class QualityStatus(StrEnum):
    PASS = "pass"
    FAIL = "fail"
    WARNING = "warning"
    PENDING = "pending"
    SKIPPED = "skipped"


class ReleaseStatus(StrEnum):
    AVAILABLE = "available"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    RELEASED = "released"


class QualityTool(StrEnum):
    COVERITY = "coverity"
    SAM = "sam"
    ONBOARD_TEST = "onboardTest"
    DOBEE = "dobee"
    CODING_RULE_CHECK = "codingRuleCheck"
    BLACKDUCK = "blackduck"


class TeamRole(StrEnum):
    PL = "PL"
    TL = "TL"
    DEVELOPER = "Developer"
    QA = "QA"
    PM = "PM"


class MilestoneName(StrEnum):
    MP = "MP"
    ES = "ES"
    CS = "CS"
    QS = "QS"


class MilestoneStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


_TERMINAL_BUILD_STATUSES: Final[frozenset[BuildStatus]] = frozenset(
    {BuildStatus.SUCCESS, BuildStatus.FAILED, BuildStatus.CANCELLED}
)
_TERMINAL_STAGE_STATUSES: Final[frozenset[StageStatus]] = frozenset(
    {StageStatus.SUCCESS, StageStatus.FAILED, StageStatus.SKIPPED}
)
_LAYER_TYPE_ALIASES: Final[dict[str, LayerType]] = {"custom": LayerType.LAYER}
_TOOL_ATTRIBUTES: Final[dict[QualityTool, str]] = {
    QualityTool.COVERITY: "coverity",
    QualityTool.SAM: "sam",
    QualityTool.ONBOARD_TEST: "onboard_test",
    QualityTool.DOBEE: "dobee",
    QualityTool.CODING_RULE_CHECK: "coding_rule_check",
    QualityTool.BLACKDUCK: "blackduck",
}


class InterchangeModel:
    """Mixin for camelCase dict/json serialization of domain snapshots."""

    def to_dict(self) -> dict[str, JSONValue]:
        serialized = _serialize_value(self, self.__class__.__name__)
        if not isinstance(serialized, dict):
            _fail(self.__class__.__name__, "serialized model must be an object")
        return serialized

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TeamMember(InterchangeModel):
    id: str
    name: str
    email: str = ""
    role: TeamRole = TeamRole.DEVELOPER

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_str(self.id, "TeamMember.id"))
        object.__setattr__(self, "name", _as_str(self.name, "TeamMember.name"))
        object.__setattr__(self, "role", _as_enum(TeamRole, self.role, "TeamMember.role"))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> TeamMember:
        data = _expect_mapping(payload, "TeamMember")
        return cls(
            id=_as_str(_field(data, "id"), "TeamMember.id"),
            name=_as_str(_field(data, "name"), "TeamMember.name"),
            email=_as_str(_field(data, "email", ""), "TeamMember.email", min_len=0),
            role=_as_enum(TeamRole, _field(data, "role", "Developer"), "TeamMember.role"),
        )


@dataclass(frozen=True, slots=True)
class Milestone(InterchangeModel):
    id: str
    name: MilestoneName
    target_date: date
    status: MilestoneStatus = MilestoneStatus.PENDING

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> Milestone:
        data = _expect_mapping(payload, "Milestone")
        return cls(
            id=_as_str(_field(data, "id"), "Milestone.id"),
            name=_as_enum(MilestoneName, _field(data, "name"), "Milestone.name"),
            target_date=_as_date(_field(data, "target_date"), "Milestone.target_date"),
            status=_as_enum(MilestoneStatus, _field(data, "status", "pending"), "Milestone.status"),
        )


@dataclass(frozen=True, slots=True)
class ScmConfig(InterchangeModel):
    repository: str
    branch: str
    revision_tag: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> ScmConfig:
        data = _expect_mapping(payload, "ScmConfig")
        return cls(
            repository=_as_str(_field(data, "repository"), "ScmConfig.repository"),
            branch=_as_str(_field(data, "branch"), "ScmConfig.branch"),
            revision_tag=_as_optional_str(_field(data, "revision_tag"), "ScmConfig.revision_tag"),
        )


@dataclass(frozen=True, slots=True)
class BuildEnvConfig(InterchangeModel):
    batch_file_path: str = ""
    build_batch_options: str = ""

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> BuildEnvConfig:
        data = _expect_mapping(payload, "BuildEnvConfig")
        return cls(
            batch_file_path=_as_str(
                _field(data, "batch_file_path", ""), "BuildEnvConfig.batch_file_path", min_len=0
            ),
            build_batch_options=_as_str(
                _field(data, "build_batch_options", ""),
                "BuildEnvConfig.build_batch_options",
                min_len=0,
            ),
        )


@dataclass(frozen=True, slots=True)
class BuildOptions(InterchangeModel):
    source_code_zip: bool = False
    onboard_test_binary_name: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> BuildOptions:
        data = _expect_mapping(payload, "BuildOptions")
        return cls(
            source_code_zip=_as_bool(
                _field(data, "source_code_zip", False), "BuildOptions.source_code_zip"
            ),
            onboard_test_binary_name=_as_optional_str(
                _field(data, "onboard_test_binary_name"), "BuildOptions.onboard_test_binary_name"
            ),
        )


@dataclass(frozen=True, slots=True)
class Project(InterchangeModel):
    """Tracked project; archival is a status change, never a removal."""

    id: str
    name: str
    status: ProjectStatus = ProjectStatus.ACTIVE
    group_id: str = ""
    task_code: str = ""
    oem: str = ""
    feature: str = ""
    target: str = ""
    pl: TeamMember | None = None
    tl: TeamMember | None = None
    members: tuple[TeamMember, ...] = ()
    scm_config: ScmConfig | None = None
    build_env_config: BuildEnvConfig | None = None
    build_options: BuildOptions | None = None
    milestones: tuple[Milestone, ...] = ()
    current_milestone: str | None = None
    kpi_score: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_str(self.id, "Project.id"))
        object.__setattr__(self, "name", _as_str(self.name, "Project.name"))
        object.__setattr__(self, "status", _as_enum(ProjectStatus, self.status, "Project.status"))
        object.__setattr__(self, "members", tuple(self.members))
        object.__setattr__(self, "milestones", tuple(self.milestones))
        if self.kpi_score is not None:
            object.__setattr__(
                self, "kpi_score", _as_float(self.kpi_score, "Project.kpi_score", minimum=0.0)
            )

    @property
    def is_active(self) -> bool:
        return self.status is ProjectStatus.ACTIVE

    def with_status(self, status: ProjectStatus | str) -> Project:
        return replace(self, status=_as_enum(ProjectStatus, status, "Project.status"))

    def archive(self) -> Project:
        return self.with_status(ProjectStatus.ARCHIVED)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> Project:
        data = _expect_mapping(payload, "Project")
        return cls(
            id=_as_str(_field(data, "id"), "Project.id"),
            name=_as_str(_field(data, "name"), "Project.name"),
            status=_as_enum(ProjectStatus, _field(data, "status", "active"), "Project.status"),
            group_id=_as_str(_field(data, "group_id", ""), "Project.group_id", min_len=0),
            task_code=_as_str(_field(data, "task_code", ""), "Project.task_code", min_len=0),
            oem=_as_str(_field(data, "oem", ""), "Project.oem", min_len=0),
            feature=_as_str(_field(data, "feature", ""), "Project.feature", min_len=0),
            target=_as_str(_field(data, "target", ""), "Project.target", min_len=0),
            pl=_optional(_field(data, "pl"), TeamMember.from_mapping),
            tl=_optional(_field(data, "tl"), TeamMember.from_mapping),
            members=tuple(
                TeamMember.from_mapping(item)
                for item in _as_mapping_list(_field(data, "members", ()), "Project.members")
            ),
            scm_config=_optional(_field(data, "scm_config"), ScmConfig.from_mapping),
            build_env_config=_optional(_field(data, "build_env_config"), BuildEnvConfig.from_mapping),
            build_options=_optional(_field(data, "build_options"), BuildOptions.from_mapping),
            milestones=tuple(
                Milestone.from_mapping(item)
                for item in _as_mapping_list(_field(data, "milestones", ()), "Project.milestones")
            ),
            current_milestone=_as_optional_str(
                _field(data, "current_milestone"), "Project.current_milestone"
            ),
            kpi_score=_as_optional_float(_field(data, "kpi_score"), "Project.kpi_score"),
        )


# ---------------------------------------------------------------------------
# Stage settings (one typed block per tool)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CoveritySettings(InterchangeModel):
    threshold: int | None = None
    rule_set: str = "default"
    custom_rules: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.threshold is not None:
            _as_int(self.threshold, "CoveritySettings.threshold", minimum=0)
        _as_choice(self.rule_set, "CoveritySettings.rule_set", ("default", "strict", "custom"))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> CoveritySettings:
        data = _expect_mapping(payload, "CoveritySettings")
        return cls(
            threshold=_as_optional_int(_field(data, "threshold"), "CoveritySettings.threshold"),
            rule_set=_as_str(_field(data, "rule_set", "default"), "CoveritySettings.rule_set"),
            custom_rules=_as_str_tuple(
                _field(data, "custom_rules", ()), "CoveritySettings.custom_rules"
            ),
        )


@dataclass(frozen=True, slots=True)
class SamSettings(InterchangeModel):
    level: str = "standard"
    exclude_paths: tuple[str, ...] = ()
    min_score: float | None = None

    def __post_init__(self) -> None:
        _as_choice(self.level, "SamSettings.level", ("basic", "standard", "strict"))
        if self.min_score is not None:
            _as_float(self.min_score, "SamSettings.min_score", minimum=0.0)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> SamSettings:
        data = _expect_mapping(payload, "SamSettings")
        return cls(
            level=_as_str(_field(data, "level", "standard"), "SamSettings.level"),
            exclude_paths=_as_str_tuple(_field(data, "exclude_paths", ()), "SamSettings.exclude_paths"),
            min_score=_as_optional_float(_field(data, "min_score"), "SamSettings.min_score"),
        )


@dataclass(frozen=True, slots=True)
class OnboardTestSettings(InterchangeModel):
    test_suite: str = ""
    skip_tests: tuple[str, ...] = ()
    parallel_count: int | None = None
    max_failed_tests: int | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> OnboardTestSettings:
        data = _expect_mapping(payload, "OnboardTestSettings")
        return cls(
            test_suite=_as_str(
                _field(data, "test_suite", ""), "OnboardTestSettings.test_suite", min_len=0
            ),
            skip_tests=_as_str_tuple(
                _field(data, "skip_tests", ()), "OnboardTestSettings.skip_tests"
            ),
            parallel_count=_as_optional_int(
                _field(data, "parallel_count"), "OnboardTestSettings.parallel_count", minimum=1
            ),
            max_failed_tests=_as_optional_int(
                _field(data, "max_failed_tests"), "OnboardTestSettings.max_failed_tests"
            ),
        )


@dataclass(frozen=True, slots=True)
class BlackDuckSettings(InterchangeModel):
    scan_mode: str = "full"
    exclude_patterns: tuple[str, ...] = ()
    max_violations: int | None = None

    def __post_init__(self) -> None:
        _as_choice(self.scan_mode, "BlackDuckSettings.scan_mode", ("full", "incremental"))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> BlackDuckSettings:
        data = _expect_mapping(payload, "BlackDuckSettings")
        return cls(
            scan_mode=_as_str(_field(data, "scan_mode", "full"), "BlackDuckSettings.scan_mode"),
            exclude_patterns=_as_str_tuple(
                _field(data, "exclude_patterns", ()), "BlackDuckSettings.exclude_patterns"
            ),
            max_violations=_as_optional_int(
                _field(data, "max_violations"), "BlackDuckSettings.max_violations"
            ),
        )


@dataclass(frozen=True, slots=True)
class CodingRuleCheckSettings(InterchangeModel):
    rules: tuple[str, ...] = ()
    severity: str = "error"
    max_violations: int | None = None

    def __post_init__(self) -> None:
        _as_choice(self.severity, "CodingRuleCheckSettings.severity", ("error", "warning", "info"))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> CodingRuleCheckSettings:
        data = _expect_mapping(payload, "CodingRuleCheckSettings")
        return cls(
            rules=_as_str_tuple(_field(data, "rules", ()), "CodingRuleCheckSettings.rules"),
            severity=_as_str(_field(data, "severity", "error"), "CodingRuleCheckSettings.severity"),
            max_violations=_as_optional_int(
                _field(data, "max_violations"), "CodingRuleCheckSettings.max_violations"
            ),
        )


@dataclass(frozen=True, slots=True)
class WarningCountSettings(InterchangeModel):
    max_warnings: int = 0
    treat_as_error: bool = False

    def __post_init__(self) -> None:
        _as_int(self.max_warnings, "WarningCountSettings.max_warnings", minimum=0)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> WarningCountSettings:
        data = _expect_mapping(payload, "WarningCountSettings")
        return cls(
            max_warnings=_as_int(
                _field(data, "max_warnings", 0), "WarningCountSettings.max_warnings", minimum=0
            ),
            treat_as_error=_as_bool(
                _field(data, "treat_as_error", False), "WarningCountSettings.treat_as_error"
            ),
        )


@dataclass(frozen=True, slots=True)
class DoBEESettings(InterchangeModel):
    profile: str = ""
    target_branch: str | None = None
    min_score: float | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> DoBEESettings:
        data = _expect_mapping(payload, "DoBEESettings")
        return cls(
            profile=_as_str(_field(data, "profile", ""), "DoBEESettings.profile", min_len=0),
            target_branch=_as_optional_str(
                _field(data, "target_branch"), "DoBEESettings.target_branch"
            ),
            min_score=_as_optional_float(_field(data, "min_score"), "DoBEESettings.min_score"),
        )


@dataclass(frozen=True, slots=True)
class TastySettings(InterchangeModel):
    config_file: str = ""
    test_timeout: int | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> TastySettings:
        data = _expect_mapping(payload, "TastySettings")
        return cls(
            config_file=_as_str(
                _field(data, "config_file", ""), "TastySettings.config_file", min_len=0
            ),
            test_timeout=_as_optional_int(
                _field(data, "test_timeout"), "TastySettings.test_timeout", minimum=1
            ),
        )


@dataclass(frozen=True, slots=True)
class BuildStageSettings(InterchangeModel):
    optimization: str = "release"
    clean_build: bool = False
    parallel_jobs: int | None = None

    def __post_init__(self) -> None:
        _as_choice(
            self.optimization, "BuildStageSettings.optimization", ("debug", "release", "profile")
        )

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> BuildStageSettings:
        data = _expect_mapping(payload, "BuildStageSettings")
        return cls(
            optimization=_as_str(
                _field(data, "optimization", "release"), "BuildStageSettings.optimization"
            ),
            clean_build=_as_bool(_field(data, "clean_build", False), "BuildStageSettings.clean_build"),
            parallel_jobs=_as_optional_int(
                _field(data, "parallel_jobs"), "BuildStageSettings.parallel_jobs", minimum=1
            ),
        )


@dataclass(frozen=True, slots=True)
class StageSettings(InterchangeModel):
    """Common execution settings plus at most one block per tool."""

    timeout: int | None = None
    retry_count: int | None = None
    coverity: CoveritySettings | None = None
    sam: SamSettings | None = None
    onboard_test: OnboardTestSettings | None = None
    blackduck: BlackDuckSettings | None = None
    coding_rule_check: CodingRuleCheckSettings | None = None
    warning_count: WarningCountSettings | None = None
    dobee: DoBEESettings | None = None
    tasty: TastySettings | None = None
    build: BuildStageSettings | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> StageSettings:
        data = _expect_mapping(payload, "StageSettings")
        return cls(
            timeout=_as_optional_int(_field(data, "timeout"), "StageSettings.timeout", minimum=1),
            retry_count=_as_optional_int(_field(data, "retry_count"), "StageSettings.retry_count"),
            coverity=_optional(_field(data, "coverity"), CoveritySettings.from_mapping),
            sam=_optional(_field(data, "sam"), SamSettings.from_mapping),
            onboard_test=_optional(_field(data, "onboard_test"), OnboardTestSettings.from_mapping),
            blackduck=_optional(_field(data, "blackduck"), BlackDuckSettings.from_mapping),
            coding_rule_check=_optional(
                _field(data, "coding_rule_check"), CodingRuleCheckSettings.from_mapping
            ),
            warning_count=_optional(_field(data, "warning_count"), WarningCountSettings.from_mapping),
            dobee=_optional(_field(data, "dobee"), DoBEESettings.from_mapping),
            tasty=_optional(_field(data, "tasty"), TastySettings.from_mapping),
            build=_optional(_field(data, "build"), BuildStageSettings.from_mapping),
        )


# ---------------------------------------------------------------------------
# Layer and pipeline configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StageConfig(InterchangeModel):
    """One configured pipeline stage; ``required`` implies ``enabled``."""

    name: str
    enabled: bool = True
    required: bool = False
    settings: StageSettings = field(default_factory=StageSettings)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _as_str(self.name, "StageConfig.name"))
        _as_bool(self.enabled, "StageConfig.enabled")
        _as_bool(self.required, "StageConfig.required")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> StageConfig:
        data = _expect_mapping(payload, "StageConfig")
        settings_raw = _field(data, "settings")
        return cls(
            name=_as_str(_field(data, "name"), "StageConfig.name"),
            enabled=_as_bool(_field(data, "enabled", True), "StageConfig.enabled"),
            required=_as_bool(_field(data, "required", False), "StageConfig.required"),
            settings=(
                StageSettings() if settings_raw is None else StageSettings.from_mapping(settings_raw)
            ),
        )


@dataclass(frozen=True, slots=True)
class Layer(InterchangeModel):
    """Named pipeline template bound to one project.

    The pipeline configuration is validated on every construction, so each
    create or update of a layer goes through the same checks.
    """

    id: str
    project_id: str
    name: str
    type: LayerType = LayerType.LAYER
    pipeline_config: tuple[StageConfig, ...] = ()

    def __post_init__(self) -> None:
        from mint_portal.pipeline.configuration import assert_valid_pipeline_config

        object.__setattr__(self, "id", _as_str(self.id, "Layer.id"))
        object.__setattr__(self, "project_id", _as_str(self.project_id, "Layer.project_id"))
        object.__setattr__(self, "name", _as_str(self.name, "Layer.name"))
        object.__setattr__(self, "type", _as_layer_type(self.type, "Layer.type"))
        object.__setattr__(self, "pipeline_config", tuple(self.pipeline_config))
        assert_valid_pipeline_config(self.pipeline_config)

    @property
    def is_release(self) -> bool:
        return self.type is LayerType.RELEASE

    def with_pipeline_config(self, stages: tuple[StageConfig, ...] | list[StageConfig]) -> Layer:
        return replace(self, pipeline_config=tuple(stages))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> Layer:
        data = _expect_mapping(payload, "Layer")
        return cls(
            id=_as_str(_field(data, "id"), "Layer.id"),
            project_id=_as_str(_field(data, "project_id"), "Layer.project_id"),
            name=_as_str(_field(data, "name"), "Layer.name"),
            type=_as_layer_type(_field(data, "type", "layer"), "Layer.type"),
            pipeline_config=tuple(
                StageConfig.from_mapping(item)
                for item in _as_mapping_list(
                    _field(data, "pipeline_config", ()), "Layer.pipeline_config"
                )
            ),
        )


# ---------------------------------------------------------------------------
# Build, stages and quality
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StageSummary(InterchangeModel):
    message: str | None = None
    error_count: int | None = None
    warning_count: int | None = None
    passed_tests: int | None = None
    failed_tests: int | None = None
    coverage: float | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> StageSummary:
        data = _expect_mapping(payload, "StageSummary")
        return cls(
            message=_as_optional_str(_field(data, "message"), "StageSummary.message"),
            error_count=_as_optional_int(_field(data, "error_count"), "StageSummary.error_count"),
            warning_count=_as_optional_int(
                _field(data, "warning_count"), "StageSummary.warning_count"
            ),
            passed_tests=_as_optional_int(_field(data, "passed_tests"), "StageSummary.passed_tests"),
            failed_tests=_as_optional_int(_field(data, "failed_tests"), "StageSummary.failed_tests"),
            coverage=_as_optional_float(_field(data, "coverage"), "StageSummary.coverage"),
        )


@dataclass(frozen=True, slots=True)
class BuildStage(InterchangeModel):
    name: str
    status: StageStatus = StageStatus.PENDING
    started_at: datetime | None = None
    finished_at: datetime | None = None
    duration: float | None = None
    summary: StageSummary | None = None
    log_url: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _as_str(self.name, "BuildStage.name"))
        object.__setattr__(self, "status", _as_enum(StageStatus, self.status, "BuildStage.status"))
        started = _as_optional_datetime(self.started_at, "BuildStage.started_at")
        finished = _as_optional_datetime(self.finished_at, "BuildStage.finished_at")
        object.__setattr__(self, "started_at", started)
        object.__setattr__(self, "finished_at", finished)
        if started is not None and finished is not None:
            if finished < started:
                _fail("BuildStage.finished_at", "must not precede started_at")
            if self.duration is None:
                object.__setattr__(self, "duration", (finished - started).total_seconds())
        if self.duration is not None:
            object.__setattr__(
                self, "duration", _as_float(self.duration, "BuildStage.duration", minimum=0.0)
            )

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> BuildStage:
        data = _expect_mapping(payload, "BuildStage")
        return cls(
            name=_as_str(_field(data, "name"), "BuildStage.name"),
            status=_as_enum(StageStatus, _field(data, "status", "pending"), "BuildStage.status"),
            started_at=_as_optional_datetime(_field(data, "started_at"), "BuildStage.started_at"),
            finished_at=_as_optional_datetime(
                _field(data, "finished_at"), "BuildStage.finished_at"
            ),
            duration=_as_optional_float(_field(data, "duration"), "BuildStage.duration"),
            summary=_optional(_field(data, "summary"), StageSummary.from_mapping),
            log_url=_as_optional_str(_field(data, "log_url"), "BuildStage.log_url"),
        )


@dataclass(frozen=True, slots=True)
class QualityResult(InterchangeModel):
    """Verdict of one quality tool with the raw metric it was judged on."""

    status: QualityStatus = QualityStatus.PENDING
    score: float | None = None
    issues: int | None = None
    details: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "status", _as_enum(QualityStatus, self.status, "QualityResult.status")
        )
        if self.score is not None:
            object.__setattr__(self, "score", _as_float(self.score, "QualityResult.score"))
        if self.issues is not None:
            _as_int(self.issues, "QualityResult.issues", minimum=0)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> QualityResult:
        data = _expect_mapping(payload, "QualityResult")
        return cls(
            status=_as_enum(QualityStatus, _field(data, "status", "pending"), "QualityResult.status"),
            score=_as_optional_float(_field(data, "score"), "QualityResult.score"),
            issues=_as_optional_int(_field(data, "issues"), "QualityResult.issues"),
            details=_as_optional_str(_field(data, "details"), "QualityResult.details"),
        )


@dataclass(frozen=True, slots=True)
class QualityMetrics(InterchangeModel):
    """Fixed set of per-tool results attached to a build; absent tools are ``None``."""

    coverity: QualityResult | None = None
    sam: QualityResult | None = None
    onboard_test: QualityResult | None = None
    dobee: QualityResult | None = None
    coding_rule_check: QualityResult | None = None
    blackduck: QualityResult | None = None

    def get(self, tool: QualityTool | str) -> QualityResult | None:
        resolved = _as_enum(QualityTool, tool, "QualityMetrics.tool")
        return cast("QualityResult | None", getattr(self, _TOOL_ATTRIBUTES[resolved]))

    def items(self) -> tuple[tuple[QualityTool, QualityResult | None], ...]:
        return tuple((tool, self.get(tool)) for tool in QualityTool)

    @classmethod
    def from_results(cls, results: Mapping[QualityTool, QualityResult]) -> QualityMetrics:
        return cls(**{_TOOL_ATTRIBUTES[tool]: result for tool, result in results.items()})

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> QualityMetrics:
        data = _expect_mapping(payload, "QualityMetrics")
        results: dict[QualityTool, QualityResult] = {}
        for tool in QualityTool:
            raw = _field(data, _TOOL_ATTRIBUTES[tool])
            if raw is not None:
                results[tool] = QualityResult.from_mapping(
                    _expect_mapping(raw, f"QualityMetrics.{tool.value}")
                )
        return cls.from_results(results)


@dataclass(frozen=True, slots=True)
class ReleaseCriteria(InterchangeModel):
    """Derived promotion verdict; never edited directly."""

    coverity_passed: bool
    sam_passed: bool
    onboard_test_passed: bool
    blackduck_passed: bool
    all_stages_passed: bool
    overall_passed: bool

    def failed_checks(self) -> tuple[str, ...]:
        checks = (
            ("allStagesPassed", self.all_stages_passed),
            ("coverityPassed", self.coverity_passed),
            ("samPassed", self.sam_passed),
            ("onboardTestPassed", self.onboard_test_passed),
            ("blackduckPassed", self.blackduck_passed),
        )
        return tuple(name for name, passed in checks if not passed)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> ReleaseCriteria:
        data = _expect_mapping(payload, "ReleaseCriteria")
        return cls(
            coverity_passed=_as_bool(
                _field(data, "coverity_passed", False), "ReleaseCriteria.coverity_passed"
            ),
            sam_passed=_as_bool(_field(data, "sam_passed", False), "ReleaseCriteria.sam_passed"),
            onboard_test_passed=_as_bool(
                _field(data, "onboard_test_passed", False), "ReleaseCriteria.onboard_test_passed"
            ),
            blackduck_passed=_as_bool(
                _field(data, "blackduck_passed", False), "ReleaseCriteria.blackduck_passed"
            ),
            all_stages_passed=_as_bool(
                _field(data, "all_stages_passed", False), "ReleaseCriteria.all_stages_passed"
            ),
            overall_passed=_as_bool(
                _field(data, "overall_passed", False), "ReleaseCriteria.overall_passed"
            ),
        )


@dataclass(frozen=True, slots=True)
class Build(InterchangeModel):
    """One execution of a layer's pipeline.

    ``finished_at`` is set exactly when ``status`` is terminal, and
    ``duration`` always equals ``finished_at - started_at`` in seconds.
    """

    id: str
    project_id: str
    layer_id: str
    started_at: datetime
    status: BuildStatus = BuildStatus.PENDING
    stages: tuple[BuildStage, ...] = ()
    round: int = 1
    build_number: int = 1
    triggered_by: str = ""
    quality_metrics: QualityMetrics | None = None
    release_criteria: ReleaseCriteria | None = None
    release_status: ReleaseStatus | None = None
    finished_at: datetime | None = None
    duration: float | None = None
    fw_name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_str(self.id, "Build.id"))
        object.__setattr__(self, "project_id", _as_str(self.project_id, "Build.project_id"))
        object.__setattr__(self, "layer_id", _as_str(self.layer_id, "Build.layer_id"))
        object.__setattr__(self, "status", _as_enum(BuildStatus, self.status, "Build.status"))
        object.__setattr__(self, "stages", tuple(self.stages))
        _as_int(self.round, "Build.round", minimum=0)
        _as_int(self.build_number, "Build.build_number", minimum=0)
        if self.release_status is not None:
            object.__setattr__(
                self,
                "release_status",
                _as_enum(ReleaseStatus, self.release_status, "Build.release_status"),
            )

        started = _as_datetime(self.started_at, "Build.started_at")
        finished = _as_optional_datetime(self.finished_at, "Build.finished_at")
        object.__setattr__(self, "started_at", started)
        object.__setattr__(self, "finished_at", finished)

        if self.status.is_terminal and finished is None:
            _fail("Build.finished_at", f"required for terminal status {self.status.value!r}")
        if not self.status.is_terminal and finished is not None:
            _fail("Build.finished_at", f"must be absent for status {self.status.value!r}")

        if finished is None:
            if self.duration is not None:
                _fail("Build.duration", "must be absent while the build is not finished")
            return
        if finished < started:
            _fail("Build.finished_at", "must not precede started_at")
        elapsed = (finished - started).total_seconds()
        if self.duration is not None:
            reported = _as_float(self.duration, "Build.duration", minimum=0.0)
            if abs(reported - elapsed) > _DURATION_TOLERANCE_SECONDS:
                _fail("Build.duration", f"{reported} does not match finished_at - started_at")
        object.__setattr__(self, "duration", elapsed)

    @property
    def stage_names(self) -> tuple[str, ...]:
        return tuple(stage.name for stage in self.stages)

    def stage(self, name: str) -> BuildStage | None:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> Build:
        data = _expect_mapping(payload, "Build")
        release_status_raw = _field(data, "release_status")
        return cls(
            id=_as_str(_field(data, "id"), "Build.id"),
            project_id=_as_str(_field(data, "project_id"), "Build.project_id"),
            layer_id=_as_str(_field(data, "layer_id"), "Build.layer_id"),
            started_at=_as_datetime(_field(data, "started_at"), "Build.started_at"),
            status=_as_enum(BuildStatus, _field(data, "status", "pending"), "Build.status"),
            stages=tuple(
                BuildStage.from_mapping(item)
                for item in _as_mapping_list(_field(data, "stages", ()), "Build.stages")
            ),
            round=_as_int(_field(data, "round", 1), "Build.round", minimum=0),
            build_number=_as_int(_field(data, "build_number", 1), "Build.build_number", minimum=0),
            triggered_by=_as_triggered_by(_field(data, "triggered_by", ""), "Build.triggered_by"),
            quality_metrics=_optional(_field(data, "quality_metrics"), QualityMetrics.from_mapping),
            release_criteria=_optional(
                _field(data, "release_criteria"), ReleaseCriteria.from_mapping
            ),
            release_status=(
                None
                if release_status_raw is None
                else _as_enum(ReleaseStatus, release_status_raw, "Build.release_status")
            ),
            finished_at=_as_optional_datetime(_field(data, "finished_at"), "Build.finished_at"),
            duration=_as_optional_float(_field(data, "duration"), "Build.duration"),
            fw_name=_as_optional_str(_field(data, "fw_name"), "Build.fw_name"),
        )


# ---------------------------------------------------------------------------
# Dashboard rollup
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class QualityOverview(InterchangeModel):
    coverity_avg: float = 0.0
    sam_avg: float = 0.0
    pass_rate: int = 0


@dataclass(frozen=True, slots=True)
class DashboardStats(InterchangeModel):
    """Ephemeral fleet-wide rollup, recomputed from snapshots on every read."""

    success_rate: int = 0
    total_builds: int = 0
    active_projects: int = 0
    running_builds: int = 0
    recent_builds: tuple[Build, ...] = ()
    quality_overview: QualityOverview = field(default_factory=QualityOverview)
    success_builds: int = 0
    failed_builds: int = 0


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _fail(path: str, message: str) -> NoReturn:
    raise ModelValidationError(message, field=path)


def _to_camel(name: str) -> str:
    return _SNAKE_BOUNDARY.sub(lambda match: match.group(1).upper(), name)


def _field(payload: Mapping[str, object], name: str, default: object = None) -> object:
    """Look up ``name`` in snake_case or camelCase form."""

    if name in payload and payload[name] is not None:
        return payload[name]
    camel = _to_camel(name)
    if camel in payload and payload[camel] is not None:
        return payload[camel]
    return default


def _expect_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    for key in value:
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
    return cast("Mapping[str, object]", value)


def _optional(value: object, parser: Callable[[Mapping[str, object]], T]) -> T | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        _fail(parser.__qualname__.split(".")[0], f"expected object, got {type(value).__name__}")
    return parser(value)


def _as_mapping_list(value: object, path: str) -> list[Mapping[str, object]]:
    if not isinstance(value, (list, tuple)):
        _fail(path, f"expected array, got {type(value).__name__}")
    return [_expect_mapping(item, f"{path}[{index}]") for index, item in enumerate(value)]


def _as_str(value: object, path: str, *, min_len: int = 1, max_len: int = _MAX_TEXT) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip()
    if len(normalized) < min_len:
        _fail(path, f"must be at least {min_len} character(s)")
    if len(normalized) > max_len:
        _fail(path, f"must be <= {max_len} characters")
    return normalized


def _as_optional_str(value: object, path: str) -> str | None:
    if value is None:
        return None
    normalized = _as_str(value, path, min_len=0)
    return normalized or None


def _as_str_tuple(value: object, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        _fail(path, f"expected array, got {type(value).__name__}")
    return tuple(_as_str(item, f"{path}[{index}]") for index, item in enumerate(value))


def _as_choice(value: object, path: str, allowed: tuple[str, ...]) -> str:
    parsed = _as_str(value, path)
    if parsed not in allowed:
        _fail(path, f"invalid value {parsed!r}; expected one of: {', '.join(allowed)}")
    return parsed


def _as_bool(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    _fail(path, f"expected boolean, got {type(value).__name__}")


def _as_int(value: object, path: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    return value


def _as_optional_int(value: object, path: str, *, minimum: int = 0) -> int | None:
    if value is None:
        return None
    return _as_int(value, path, minimum=minimum)


def _as_float(value: object, path: str, *, minimum: float | None = None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed):
        _fail(path, "must be finite")
    if minimum is not None and parsed < minimum:
        _fail(path, f"must be >= {minimum}")
    return parsed


def _as_optional_float(value: object, path: str) -> float | None:
    if value is None:
        return None
    return _as_float(value, path)


def _as_datetime(value: object, path: str) -> datetime:
    """Parse an aware datetime; naive values are taken as UTC."""

    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        text = text[:-1] + "+00:00" if text.endswith("Z") else text
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            _fail(path, f"invalid ISO-8601 datetime: {value!r} ({exc})")
    else:
        _fail(path, f"expected datetime or ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _as_optional_datetime(value: object, path: str) -> datetime | None:
    if value is None:
        return None
    return _as_datetime(value, path)


def _as_date(value: object, path: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            _fail(path, f"invalid ISO-8601 date: {value!r} ({exc})")
    _fail(path, f"expected date or ISO-8601 string, got {type(value).__name__}")


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    """Parse an enum member; unknown values are reported as missing data."""

    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        raise MissingDataError(
            f"expected string enum value, got {type(value).__name__}", field=path
        )
    candidate = value.strip()
    for option in (candidate, candidate.lower()):
        try:
            return enum_type(option)
        except ValueError:
            continue
    allowed = ", ".join(sorted(str(item.value) for item in enum_type))
    raise MissingDataError(f"unknown value {value!r}; expected one of: {allowed}", field=path)


def _as_layer_type(value: object, path: str) -> LayerType:
    if isinstance(value, str) and value.strip().lower() in _LAYER_TYPE_ALIASES:
        return _LAYER_TYPE_ALIASES[value.strip().lower()]
    return _as_enum(LayerType, value, path)


def _as_triggered_by(value: object, path: str) -> str:
    if isinstance(value, Mapping):
        name = value.get("name", value.get("id"))
        return _as_str(name, f"{path}.name", min_len=0)
    return _as_str(value, path, min_len=0)


def _serialize_value(value: object, path: str) -> JSONValue:
    if value is None or isinstance(value, bool):
        return cast("JSONValue", value)
    if isinstance(value, (int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, Enum):
        return cast("JSONValue", value.value)
    if isinstance(value, datetime):
        return value.astimezone(UTC).isoformat().replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (tuple, list)):
        return [_serialize_value(item, f"{path}[]") for item in value]
    if isinstance(value, Mapping):
        return {str(key): _serialize_value(item, f"{path}.{key}") for key, item in value.items()}
    if is_dataclass(value) and not isinstance(value, type):
        out: dict[str, JSONValue] = {}
        for item in fields(value):
            raw = getattr(value, item.name)
            if raw is None:
                continue
            out[_to_camel(item.name)] = _serialize_value(raw, f"{path}.{item.name}")
        return out
    _fail(path, f"unsupported value type {type(value).__name__}")


__all__ = [
    "Build",
    "BuildEnvConfig",
    "BuildOptions",
    "BuildStage",
    "BuildStageSettings",
    "BuildStatus",
    "BlackDuckSettings",
    "CodingRuleCheckSettings",
    "CoveritySettings",
    "DashboardStats",
    "DoBEESettings",
    "InterchangeModel",
    "JSONScalar",
    "JSONValue",
    "Layer",
    "LayerType",
    "Milestone",
    "MilestoneName",
    "MilestoneStatus",
    "OnboardTestSettings",
    "Project",
    "ProjectStatus",
    "QualityMetrics",
    "QualityOverview",
    "QualityResult",
    "QualityStatus",
    "QualityTool",
    "ReleaseCriteria",
    "ReleaseStatus",
    "SamSettings",
    "ScmConfig",
    "StageConfig",
    "StageSettings",
    "StageStatus",
    "StageSummary",
    "TastySettings",
    "TeamMember",
    "TeamRole",
    "WarningCountSettings",
]
