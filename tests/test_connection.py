"""Tests for connection info parsing and warehouse connections."""

from unittest.mock import MagicMock, patch

import pytest

from warehouse_re.connection import (
    ConnectionInfo,
    WarehouseType,
    connect,
    create_helper,
    redact,
)
from warehouse_re.errors import ConfigurationError, ConnectionError
from warehouse_re.warehouses import BigQueryHelper, SnowflakeHelper


class TestConnectionInfo:
    """Test ConnectionInfo construction."""

    def test_from_dict_bigquery(self):
        info = ConnectionInfo.from_dict({"target": "bigquery", "projectId": "p1", "keyFilename": "/k.json"})
        assert info.target == WarehouseType.BIGQUERY
        assert info.project_id == "p1"
        assert info.key_filename == "/k.json"

    def test_from_dict_snowflake_username_alias(self):
        info = ConnectionInfo.from_dict({"target": "SNOWFLAKE", "account": "acme", "username": "me"})
        assert info.target == WarehouseType.SNOWFLAKE
        assert info.user == "me"

    def test_unknown_target(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ConnectionInfo(target="postgres")
        assert exc_info.value.details == {"target": "postgres"}

    def test_log_payload_redacts_hidden_keys(self):
        info = ConnectionInfo.from_dict({
            "target": "snowflake",
            "account": "acme",
            "password": "hunter2",
            "token": "abc",
            "hiddenKeys": ["token"],
        })
        payload = info.to_log_payload()
        assert payload["password"] == "***"
        assert payload["token"] == "***"
        assert payload["account"] == "acme"


class TestRedact:
    """Test redaction of logged payloads."""

    def test_nested(self):
        payload = {"credentials": {"private_key": "x"}, "options": {"secret": "y", "region": "eu"}}
        assert redact(payload, ["secret"]) == {
            "credentials": "***",
            "options": {"secret": "***", "region": "eu"},
        }

    def test_none_values_kept(self):
        assert redact({"password": None}) == {"password": None}

    def test_input_not_modified(self):
        payload = {"password": "p"}
        redact(payload)
        assert payload == {"password": "p"}


class TestConnect:
    """Test opening warehouse sessions."""

    def test_bigquery_with_key_file(self):
        info = ConnectionInfo(target="bigquery", project_id="p1", key_filename="/key.json", location="EU")
        with patch("google.oauth2.service_account.Credentials.from_service_account_file") as from_file, \
             patch("google.cloud.bigquery.Client") as client_class:
            client = connect(info)

        from_file.assert_called_once_with("/key.json")
        client_class.assert_called_once_with(project="p1", credentials=from_file.return_value, location="EU")
        assert client is client_class.return_value

    def test_bigquery_failure_is_connection_error(self):
        info = ConnectionInfo(target="bigquery", project_id="p1")
        with patch("google.cloud.bigquery.Client", side_effect=RuntimeError("no credentials")):
            with pytest.raises(ConnectionError) as exc_info:
                connect(info)
        assert exc_info.value.code == "CONNECTION_ERROR"
        assert "no credentials" in exc_info.value.message

    def test_snowflake(self):
        info = ConnectionInfo(target="snowflake", account="acme", user="me", password="p", warehouse="WH")
        with patch("snowflake.connector.connect") as sf_connect:
            connect(info)

        kwargs = sf_connect.call_args[1]
        assert kwargs["account"] == "acme"
        assert kwargs["warehouse"] == "WH"
        assert kwargs["application"] == "warehouse-re"
        assert "role" not in kwargs

    def test_snowflake_requires_account_and_user(self):
        info = ConnectionInfo(target="snowflake", account=None, user=None)
        with pytest.raises(ConfigurationError):
            connect(info)

    def test_snowflake_failure_is_connection_error(self):
        info = ConnectionInfo(target="snowflake", account="acme", user="me")
        with patch("snowflake.connector.connect", side_effect=RuntimeError("Incorrect username or password")):
            with pytest.raises(ConnectionError):
                connect(info)


class TestCreateHelper:
    """Test helper selection per warehouse."""

    def test_bigquery_helper(self):
        with patch("warehouse_re.connection.connect", return_value=MagicMock()):
            helper = create_helper(ConnectionInfo(target="bigquery", location="US"))
        assert isinstance(helper, BigQueryHelper)
        assert helper.location == "US"

    def test_snowflake_helper(self):
        with patch("warehouse_re.connection.connect", return_value=MagicMock()):
            helper = create_helper(ConnectionInfo(target="snowflake", database="DB"))
        assert isinstance(helper, SnowflakeHelper)
        assert helper.database == "DB"
