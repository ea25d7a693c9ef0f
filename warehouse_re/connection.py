"""Connection helper: opens a client session against the target warehouse."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .config import settings
from .errors import ConfigurationError, ConnectionError
from .warehouses import BigQueryHelper, MetadataHelper, SnowflakeHelper

logger = logging.getLogger(__name__)

# Keys always redacted from logged payloads, whatever the host marks hidden
ALWAYS_HIDDEN_KEYS = {"password", "privateKey", "private_key", "credentials", "passphrase"}


class WarehouseType(str, Enum):
    """Supported warehouses."""
    BIGQUERY = "bigquery"
    SNOWFLAKE = "snowflake"


@dataclass
class ConnectionInfo:
    """Connection parameters supplied per invocation. Never persisted."""
    target: WarehouseType = WarehouseType.BIGQUERY

    # BigQuery
    project_id: Optional[str] = None
    key_filename: Optional[str] = None
    credentials: Optional[Dict[str, Any]] = None
    location: Optional[str] = None

    # Snowflake
    account: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    warehouse: Optional[str] = None
    role: Optional[str] = None
    database: Optional[str] = None

    hidden_keys: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        if isinstance(self.target, str):
            try:
                self.target = WarehouseType(self.target.lower())
            except ValueError:
                raise ConfigurationError(
                    f"Unsupported warehouse: {self.target}",
                    details={"target": self.target},
                )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ConnectionInfo":
        """Build connection info from the host mapping, falling back to settings."""
        data = dict(data or {})
        return cls(
            target=data.get("target") or settings.default_target,
            project_id=data.get("projectId") or settings.bigquery_project_id,
            key_filename=data.get("keyFilename") or settings.bigquery_key_filename,
            credentials=data.get("credentials"),
            location=data.get("location") or settings.bigquery_location,
            account=data.get("account") or settings.snowflake_account,
            user=data.get("user") or data.get("username") or settings.snowflake_user,
            password=data.get("password") or settings.snowflake_password,
            warehouse=data.get("warehouse") or settings.snowflake_warehouse,
            role=data.get("role") or settings.snowflake_role,
            database=data.get("database") or settings.snowflake_database,
            hidden_keys=list(data.get("hiddenKeys") or []),
            raw=data,
        )

    def to_log_payload(self) -> Dict[str, Any]:
        """Connection info as logged: host keys with secrets redacted."""
        payload = dict(self.raw) or {
            "target": self.target.value,
            "projectId": self.project_id,
            "account": self.account,
            "user": self.user,
            "warehouse": self.warehouse,
            "role": self.role,
            "database": self.database,
        }
        return redact(payload, self.hidden_keys)


def redact(payload: Mapping[str, Any], hidden_keys: Optional[List[str]] = None) -> Dict[str, Any]:
    """Copy of a mapping with hidden keys replaced by ``***``."""
    hidden = ALWAYS_HIDDEN_KEYS | set(hidden_keys or [])
    result = {}
    for key, value in payload.items():
        if key in hidden and value is not None:
            result[key] = "***"
        elif isinstance(value, Mapping):
            result[key] = redact(value, hidden_keys)
        else:
            result[key] = value
    return result


def connect(connection_info: ConnectionInfo) -> Any:
    """Open a client session against the target warehouse.

    Returns:
        A ``google.cloud.bigquery.Client`` or a ``snowflake.connector`` connection

    Raises:
        ConnectionError: Invalid credentials, unreachable network or unknown
            account/project. Not retried.
    """
    if connection_info.target == WarehouseType.SNOWFLAKE:
        return _connect_snowflake(connection_info)
    return _connect_bigquery(connection_info)


def _connect_bigquery(connection_info: ConnectionInfo) -> Any:
    try:
        from google.cloud import bigquery
        from google.oauth2 import service_account
    except ImportError:
        raise ImportError(
            "google-cloud-bigquery is required. "
            "Install with: pip install google-cloud-bigquery"
        )

    try:
        credentials = None
        if connection_info.credentials:
            credentials = service_account.Credentials.from_service_account_info(connection_info.credentials)
        elif connection_info.key_filename:
            credentials = service_account.Credentials.from_service_account_file(connection_info.key_filename)

        project_id = connection_info.project_id or (credentials.project_id if credentials else None)
        client = bigquery.Client(
            project=project_id,
            credentials=credentials,
            location=connection_info.location,
        )
    except Exception as e:
        raise ConnectionError(
            f"Failed to connect to BigQuery: {e}",
            details={"project_id": connection_info.project_id},
        ) from e

    logger.debug("Opened BigQuery client for project %s", client.project)
    return client


def _connect_snowflake(connection_info: ConnectionInfo) -> Any:
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install it with: pip install snowflake-connector-python"
        )

    if not connection_info.account or not connection_info.user:
        raise ConfigurationError(
            "Snowflake connection requires an account and a user",
            details={"account": connection_info.account, "user": connection_info.user},
        )

    params = {
        "account": connection_info.account,
        "user": connection_info.user,
        "password": connection_info.password,
        "warehouse": connection_info.warehouse,
        "role": connection_info.role,
        "database": connection_info.database,
        "application": "warehouse-re",
    }
    try:
        connection = snowflake.connector.connect(**{k: v for k, v in params.items() if v is not None})
    except Exception as e:
        raise ConnectionError(
            f"Failed to connect to Snowflake: {e}",
            details={"account": connection_info.account},
        ) from e

    logger.debug("Opened Snowflake connection to account %s", connection_info.account)
    return connection


def create_helper(connection_info: ConnectionInfo) -> MetadataHelper:
    """Connect and wrap the client in the warehouse's metadata helper."""
    client = connect(connection_info)
    if connection_info.target == WarehouseType.SNOWFLAKE:
        return SnowflakeHelper(client, database=connection_info.database)
    return BigQueryHelper(client, location=connection_info.location)
