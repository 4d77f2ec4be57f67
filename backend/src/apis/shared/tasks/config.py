"""Configuration and dependency wiring for the task pipeline."""

import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import boto3

from apis.shared.errors import ConfigError
from apis.shared.queue.sqs_client import QueuePublisher

from .repository import TaskRepository
from .service import TaskService

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "1", "yes"}


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from e


@dataclass(frozen=True)
class TaskServiceConfig:
    """
    Settings for the task pipeline, read once at process start.

    Built by ``from_env`` and passed explicitly to ``build_task_context``
    instead of every module reading the environment on its own.
    """

    tasks_table: str
    aws_region: str = "us-east-1"
    create_task_queue_url: Optional[str] = None
    notification_queue_url: Optional[str] = None
    logging_enabled: bool = True
    logging_level: str = "INFO"
    idempotent_creates: bool = False
    batch_deadline_margin_ms: int = 1000

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        require_table: bool = True,
    ) -> "TaskServiceConfig":
        """
        Create configuration from environment variables.

        Args:
            env: Mapping to read from (defaults to os.environ)
            require_table: False for workers that never touch the task table

        Returns:
            TaskServiceConfig

        Raises:
            ConfigError: If TASKS_TABLE is missing (when required) or a value is malformed
        """
        env = os.environ if env is None else env

        tasks_table = (env.get("TASKS_TABLE") or "").strip()
        if require_table and not tasks_table:
            raise ConfigError("TASKS_TABLE environment variable is required")

        return cls(
            tasks_table=tasks_table,
            aws_region=env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or "us-east-1",
            create_task_queue_url=env.get("CREATE_TASK_QUEUE_URL") or None,
            notification_queue_url=env.get("NOTIFICATION_QUEUE_URL") or None,
            logging_enabled=_env_bool(env, "LOGGING_ENABLED", True),
            logging_level=(env.get("LOGGING_LEVEL") or "INFO").upper(),
            idempotent_creates=_env_bool(env, "IDEMPOTENT_CREATES", False),
            batch_deadline_margin_ms=_env_int(env, "BATCH_DEADLINE_MARGIN_MS", 1000),
        )


def configure_logging(config: TaskServiceConfig) -> None:
    """Apply the configured level to the root logger (or silence it)."""
    root = logging.getLogger()
    if not config.logging_enabled:
        logging.disable(logging.CRITICAL)
        return

    logging.disable(logging.NOTSET)
    level = logging.getLevelName(config.logging_level)
    if not isinstance(level, int):
        logger.warning(f"Unknown LOGGING_LEVEL {config.logging_level}, using INFO")
        level = logging.INFO
    root.setLevel(level)


@dataclass
class TaskContext:
    """Everything a handler needs, built once and shared by concurrent tasks."""

    config: TaskServiceConfig
    repository: TaskRepository
    publisher: QueuePublisher
    service: TaskService


def build_task_context(
    config: TaskServiceConfig,
    table: Any = None,
    sqs_client: Any = None,
) -> TaskContext:
    """
    Wire repository, queue publisher and service for a configuration.

    Args:
        config: Pipeline configuration
        table: Optional boto3 DynamoDB Table (created from config when omitted)
        sqs_client: Optional boto3 SQS client (created from config when omitted)

    Returns:
        TaskContext
    """
    if table is None or sqs_client is None:
        profile = os.getenv("AWS_PROFILE")
        session = boto3.Session(profile_name=profile) if profile else boto3.Session()
        if table is None:
            table = session.resource("dynamodb", region_name=config.aws_region).Table(
                config.tasks_table
            )
        if sqs_client is None:
            sqs_client = session.client("sqs", region_name=config.aws_region)

    repository = TaskRepository(table)
    publisher = QueuePublisher(sqs_client)
    service = TaskService(
        repository=repository,
        publisher=publisher,
        notification_queue_url=config.notification_queue_url,
    )

    logger.info(
        f"Initialized task context: table={config.tasks_table}, region={config.aws_region}, "
        f"notifications={'on' if config.notification_queue_url else 'off'}"
    )
    return TaskContext(
        config=config,
        repository=repository,
        publisher=publisher,
        service=service,
    )


# Per-process context (Lambda containers and the API process reuse it)
_context_instance: Optional[TaskContext] = None


def get_task_context() -> TaskContext:
    """Get or create the process-wide TaskContext from the environment."""
    global _context_instance
    if _context_instance is None:
        config = TaskServiceConfig.from_env()
        configure_logging(config)
        _context_instance = build_task_context(config)
    return _context_instance


def reset_task_context(context: Optional[TaskContext] = None) -> None:
    """Replace (or clear) the process-wide TaskContext."""
    global _context_instance
    _context_instance = context
