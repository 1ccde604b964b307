"""
storefront.client — TenantStore over DynamoDB and a Cognito user pool.

Every storefront is owned by exactly one Cognito account; the account's
`sub` becomes the tenant id. Records live in a single DynamoDB table with a
slug pointer next to each record (see storefront.models for the layout).

All boto3 failures are translated into TenantStoreError so handlers can
answer with the carried status and status text.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

import boto3
from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from storefront.exceptions import TenantStoreError
from storefront.models import IMMUTABLE_FIELDS, slug_key, tenant_key

logger = Logger(service="storefront-lib")

_NOT_FOUND = "Tenant not found"
_UNAVAILABLE = "Tenant store unavailable"
_KEY_ATTRIBUTES = ("PK", "SK")
# Service errors and transport failures (timeouts, unreachable endpoints).
_AWS_ERRORS = (ClientError, BotoCoreError)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", "Unknown"))
    return type(exc).__name__


def _user_attribute(user: Mapping[str, Any], name: str) -> str | None:
    for attribute in user.get("Attributes", []):
        if attribute.get("Name") == name:
            return str(attribute.get("Value"))
    return None


def _record(item: Mapping[str, Any]) -> dict[str, Any]:
    """Strip the table keys from a stored item, leaving the server view."""
    return {key: value for key, value in item.items() if key not in _KEY_ATTRIBUTES}


def _build_update_expression(
    attributes: Mapping[str, Any],
) -> tuple[str, dict[str, str], dict[str, Any]]:
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    set_parts: list[str] = []
    for idx, (field, value) in enumerate(attributes.items(), start=1):
        name_key = f"#n{idx}"
        value_key = f":v{idx}"
        names[name_key] = field
        values[value_key] = value
        set_parts.append(f"{name_key} = {value_key}")
    return "SET " + ", ".join(set_parts), names, values


# ---------------------------------------------------------------------------
# TenantStore
# ---------------------------------------------------------------------------


class TenantStore:
    """
    Persistence for storefront tenants.

    fetch(slug)                       : server view of a tenant, by slug
    create(email, password, tenant)   : provision owner account + tenant
    update(tenant_id, patch)          : partial update of an existing tenant

    Raises TenantStoreError:
        404 Tenant not found        unknown slug or id
        409 Slug already in use     slug taken (checked again inside the write)
        409 Account already exists  email already registered in the pool
        400 Invalid password / Invalid account details / immutable fields
        502 Tenant store unavailable  any other AWS failure, including timeouts
    """

    def __init__(
        self,
        table_name: str,
        user_pool_id: str,
        *,
        dynamodb_resource: Any = None,
        cognito_client: Any = None,
    ) -> None:
        self._table_name = table_name
        self._user_pool_id = user_pool_id
        region = os.environ["AWS_REGION"]
        self._dynamodb: Any = dynamodb_resource or boto3.resource("dynamodb", region_name=region)
        self._cognito: Any = cognito_client or boto3.client("cognito-idp", region_name=region)

    def _table(self) -> Any:
        return self._dynamodb.Table(self._table_name)

    def _unavailable(self, operation: str, exc: Exception) -> TenantStoreError:
        logger.warning(
            "Tenant store call failed",
            operation=operation,
            error_code=_error_code(exc),
        )
        return TenantStoreError(502, _UNAVAILABLE)

    def _get_item(self, key: dict[str, str]) -> dict[str, Any] | None:
        try:
            response = self._table().get_item(Key=key)
        except _AWS_ERRORS as exc:
            raise self._unavailable("get_item", exc) from exc
        return response.get("Item")

    def fetch(self, slug: str) -> dict[str, Any]:
        """Return the server view of the tenant owning slug."""
        pointer = self._get_item(slug_key(slug))
        if pointer is None:
            raise TenantStoreError(404, _NOT_FOUND)
        item = self._get_item(tenant_key(str(pointer["tenantId"])))
        if item is None:
            logger.warning("Dangling slug pointer", slug=slug, tenant_id=pointer["tenantId"])
            raise TenantStoreError(404, _NOT_FOUND)
        return _record(item)

    def _account_error(self, exc: Exception) -> TenantStoreError:
        code = _error_code(exc)
        if code == "UsernameExistsException":
            return TenantStoreError(409, "Account already exists")
        if code == "InvalidPasswordException":
            return TenantStoreError(400, "Invalid password")
        if code == "InvalidParameterException":
            return TenantStoreError(400, "Invalid account details")
        return self._unavailable("provision_account", exc)

    def _provision_account(self, email: str, password: str) -> str:
        """Create a confirmed Cognito user and return its sub."""
        try:
            response = self._cognito.admin_create_user(
                UserPoolId=self._user_pool_id,
                Username=email,
                UserAttributes=[
                    {"Name": "email", "Value": email},
                    {"Name": "email_verified", "Value": "true"},
                ],
                MessageAction="SUPPRESS",
            )
        except _AWS_ERRORS as exc:
            raise self._account_error(exc) from exc

        try:
            self._cognito.admin_set_user_password(
                UserPoolId=self._user_pool_id,
                Username=email,
                Password=password,
                Permanent=True,
            )
        except _AWS_ERRORS as exc:
            self._remove_account(email)
            raise self._account_error(exc) from exc

        user = response["User"]
        return _user_attribute(user, "sub") or str(user["Username"])

    def _remove_account(self, email: str) -> None:
        """Roll back a provisioned account.

        Never raises; a failed rollback is logged and the original error wins.
        """
        try:
            self._cognito.admin_delete_user(UserPoolId=self._user_pool_id, Username=email)
        except _AWS_ERRORS:
            logger.exception("Failed to roll back provisioned account")

    def create(self, email: str, password: str, tenant: Mapping[str, Any]) -> dict[str, Any]:
        """Provision the owner account and store the tenant under its id.

        tenant is a server-create draft (no id). Returns the stored record.
        """
        slug = str(tenant["slug"])
        if self._get_item(slug_key(slug)) is not None:
            raise TenantStoreError(409, "Slug already in use")

        tenant_id = self._provision_account(email, password)
        record = {**tenant, "id": tenant_id}

        try:
            self._dynamodb.meta.client.transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self._table_name,
                            "Item": {**tenant_key(tenant_id), **record},
                            "ConditionExpression": "attribute_not_exists(PK)",
                        }
                    },
                    {
                        "Put": {
                            "TableName": self._table_name,
                            "Item": {**slug_key(slug), "tenantId": tenant_id},
                            "ConditionExpression": "attribute_not_exists(PK)",
                        }
                    },
                ]
            )
        except _AWS_ERRORS as exc:
            self._remove_account(email)
            if _error_code(exc) == "TransactionCanceledException":
                raise TenantStoreError(409, "Slug already in use") from exc
            raise self._unavailable("transact_write_items", exc) from exc

        logger.info("Tenant created", tenant_id=tenant_id, slug=slug)
        return record

    def update(self, tenant_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        """Apply patch to an existing tenant and return the updated record."""
        locked = sorted(set(patch) & (IMMUTABLE_FIELDS | set(_KEY_ATTRIBUTES)))
        if locked:
            raise TenantStoreError(400, f"Immutable field(s): {', '.join(locked)}")

        if not patch:
            item = self._get_item(tenant_key(tenant_id))
            if item is None:
                raise TenantStoreError(404, _NOT_FOUND)
            return _record(item)

        update_expression, names, values = _build_update_expression(patch)
        try:
            response = self._table().update_item(
                Key=tenant_key(tenant_id),
                UpdateExpression=update_expression,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ConditionExpression="attribute_exists(PK)",
                ReturnValues="ALL_NEW",
            )
        except _AWS_ERRORS as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                raise TenantStoreError(404, _NOT_FOUND) from exc
            raise self._unavailable("update_item", exc) from exc

        logger.info("Tenant updated", tenant_id=tenant_id, fields=sorted(patch))
        return _record(response.get("Attributes", {}))
