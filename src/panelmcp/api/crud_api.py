"""CRUD operations over registered resources.

Each operation resolves the resource, does its one unit of work against the
session and returns an envelope dict. Errors never escape: every failure is
converted to {"success": False, "error": ...} here.
"""

import json
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..database.entity_repo import (
    delete_entity,
    find_by_id,
    primary_key_value,
    save_entity,
    soft_delete_entity,
)
from ..errors import (
    ConstraintViolation,
    InvalidFilter,
    InvalidInclude,
    InvalidSort,
    RecordNotFound,
    ResourceNotFound,
    StoreFailure,
    UnsupportedOperation,
    ValidationFailed,
)
from ..query.models import MutationRequest, QueryRequest
from ..query.translator import build_links, execute, translate
from ..resources.registry import ResourceDescriptor, ResourceRegistry
from ..resources.serializer import build_include_tree, to_representation
from ..utils.logging import get_logger
from ..database.schema import utc_now_z
from .envelope import failure, success

logger = get_logger(__name__)


def _errors_json(errors: Dict[str, Any]) -> str:
    return json.dumps(errors, sort_keys=True)


def _mutation_request(**kwargs: Any) -> MutationRequest:
    try:
        return MutationRequest(**kwargs)
    except ValidationError as e:
        raise ValidationFailed.from_pydantic(e) from e


def _require_id(request: MutationRequest) -> str:
    if not request.id:
        raise ValidationFailed({"id": ["Field required"]})
    return request.id


def _require_validation(descriptor: ResourceDescriptor) -> None:
    if not descriptor.capabilities.supports_validation:
        raise UnsupportedOperation(
            f"The collection '{descriptor.public_key}' doesn't support automatic data validation. "
            "Please contact your system administrator."
        )


def _reject_unknown_fields(descriptor: ResourceDescriptor, payload: Dict[str, Any]) -> None:
    accepted = descriptor.capabilities.validator.model_fields
    unknown = [name for name in payload if name not in accepted]
    if unknown:
        raise ValidationFailed({name: ["This field is not accepted for this collection."] for name in unknown})


def validate_new_payload(descriptor: ResourceDescriptor, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a full payload; returns the column values to write."""
    caps = descriptor.capabilities
    _reject_unknown_fields(descriptor, payload)
    try:
        validated = caps.validator.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailed.from_pydantic(e) from e
    values = validated.model_dump(exclude_unset=True)
    return {name: value for name, value in values.items() if name in caps.columns}


def validate_partial_payload(
    descriptor: ResourceDescriptor,
    entity: Any,
    payload: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Validate the entity's current state overlaid with the payload.

    Only payload keys are returned, so unspecified fields keep their values.
    """
    caps = descriptor.capabilities
    _reject_unknown_fields(descriptor, payload)
    current = {
        name: getattr(entity, name)
        for name in caps.validator.model_fields
        if name in caps.columns
    }
    try:
        validated = caps.validator.model_validate({**current, **payload})
    except ValidationError as e:
        raise ValidationFailed.from_pydantic(e) from e
    values = validated.model_dump()
    return {name: values[name] for name in payload if name in caps.columns}


def create_resource(
    session: Session,
    registry: ResourceRegistry,
    resource: str,
    payload: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """ResolveResource -> ValidatePayload -> Persist -> Refresh."""
    try:
        request = _mutation_request(resource=resource, payload=payload)
    except ValidationFailed as e:
        return failure("The information provided is incomplete or invalid: " + _errors_json(e.errors))

    try:
        descriptor = registry.require(request.resource)
        _require_validation(descriptor)
        values = validate_new_payload(descriptor, request.payload)
        entity = save_entity(session, descriptor.entity_type(**values))
        logger.info(f"Created {request.resource} {primary_key_value(entity)}")
        return success(
            to_representation(entity),
            {
                "resource": request.resource,
                "id": primary_key_value(entity),
                "created_at": getattr(entity, "created_at", None),
            },
            message="Your item has been successfully added",
        )
    except ResourceNotFound as e:
        logger.warning(str(e))
        return failure(e.describe("add to"))
    except UnsupportedOperation as e:
        return failure(str(e))
    except ValidationFailed as e:
        return failure("Some required information is missing or incorrect: " + _errors_json(e.errors))
    except Exception as e:
        logger.error(f"Create on '{resource}' failed: {e}", exc_info=True)
        return failure(f"Unable to add your item: {e}")


def read_resources(
    session: Session,
    registry: ResourceRegistry,
    resource: str,
    filter: Optional[Dict[str, Any]] = None,
    sort: Optional[str] = None,
    include: Optional[str] = None,
    fields: Optional[Dict[str, Any]] = None,
    page: Optional[Dict[str, Any]] = None,
    append: Optional[str] = None,
) -> Dict[str, Any]:
    """ResolveResource -> Translate -> Execute -> Paginate."""
    try:
        request = QueryRequest(
            resource=resource,
            filter=filter,
            sort=sort,
            include=include,
            fields=fields,
            page=page,
            append=append,
        )
    except ValidationError as e:
        errors = ValidationFailed.from_pydantic(e).errors
        return failure("The search criteria provided is invalid: " + _errors_json(errors))

    try:
        descriptor = registry.require(request.resource)
        executable = translate(session, descriptor, request)
        result = execute(executable)
        includes = build_include_tree(executable.include_paths)
        field_sets = request.field_sets()
        appends = request.append_names()
        data = [to_representation(item, field_sets, includes, appends) for item in result.items]
        return success(data, result.metadata(), links=build_links(request, result))
    except ResourceNotFound as e:
        logger.warning(str(e))
        return failure(e.describe("access"))
    except InvalidFilter as e:
        return failure(f"The filter you specified cannot be applied (JSON:API filter format required): {e}")
    except InvalidSort as e:
        return failure(f"The sorting option you chose is not available (JSON:API sort format required): {e}")
    except InvalidInclude as e:
        return failure(
            f"The related information you requested is not available (JSON:API include format required): {e}"
        )
    except Exception as e:
        logger.error(f"Read on '{resource}' failed: {e}", exc_info=True)
        return failure(f"Unable to retrieve your items: {e}")


def update_resource(
    session: Session,
    registry: ResourceRegistry,
    resource: str,
    id: Any,
    payload: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """ResolveResource -> FindById -> ValidatePayload(partial) -> Persist -> Refresh -> DiffChangedFields."""
    try:
        request = _mutation_request(resource=resource, id=id, payload=payload)
        record_id = _require_id(request)
    except ValidationFailed as e:
        return failure("The changes provided are incomplete or invalid: " + _errors_json(e.errors))

    try:
        descriptor = registry.require(request.resource)
        _require_validation(descriptor)
        entity = find_by_id(session, descriptor.entity_type, record_id)
        if entity is None:
            raise RecordNotFound(request.resource, record_id)

        before = to_representation(entity)
        values = validate_partial_payload(descriptor, entity, request.payload)
        for name, value in values.items():
            setattr(entity, name, value)
        save_entity(session, entity)
        after = to_representation(entity)
        changed_fields = [name for name, value in after.items() if before.get(name) != value]
        logger.info(f"Updated {request.resource} {record_id}: {changed_fields}")

        return success(
            after,
            {
                "resource": request.resource,
                "id": primary_key_value(entity),
                "updated_at": getattr(entity, "updated_at", None),
                "changed_fields": changed_fields,
            },
            message="Your item has been successfully updated",
        )
    except ResourceNotFound as e:
        logger.warning(str(e))
        return failure(e.describe("modify"))
    except RecordNotFound as e:
        return failure(str(e))
    except UnsupportedOperation as e:
        return failure(str(e))
    except ValidationFailed as e:
        return failure("Some of the changes you made are invalid: " + _errors_json(e.errors))
    except Exception as e:
        logger.error(f"Update on '{resource}' failed: {e}", exc_info=True)
        return failure(f"Unable to update your item: {e}")


def delete_resource(
    session: Session,
    registry: ResourceRegistry,
    resource: str,
    id: Any,
    force: bool = False,
) -> Dict[str, Any]:
    """ResolveResource -> FindById -> Delete(force?)."""
    try:
        request = _mutation_request(resource=resource, id=id)
        record_id = _require_id(request)
        if not isinstance(force, bool):
            raise ValidationFailed({"force": ["The force field must be true or false."]})
    except ValidationFailed as e:
        return failure("The deletion request is invalid: " + _errors_json(e.errors))

    try:
        descriptor = registry.require(request.resource)
        soft_deletes = descriptor.capabilities.soft_deletes
        entity = find_by_id(session, descriptor.entity_type, record_id, with_trashed=force)
        if entity is None:
            raise RecordNotFound(request.resource, record_id)

        deleted_data = to_representation(entity)
        deleted_id = primary_key_value(entity)
        if soft_deletes and not force:
            deleted_at = soft_delete_entity(session, entity)
            delete_type = "soft_deleted"
        else:
            delete_entity(session, entity)
            deleted_at = utc_now_z()
            delete_type = "force_deleted" if force else "deleted"
        logger.info(f"Removed {request.resource} {deleted_id} ({delete_type})")

        return success(
            deleted_data,
            {
                "resource": request.resource,
                "id": deleted_id,
                "deleted_at": deleted_at,
                "delete_type": delete_type,
                "permanently_deleted": delete_type in ("force_deleted", "deleted"),
            },
            message="Your item has been successfully removed",
        )
    except ResourceNotFound as e:
        logger.warning(str(e))
        return failure(e.describe("remove from"))
    except RecordNotFound as e:
        return failure(str(e))
    except ConstraintViolation:
        return failure(
            f"Cannot remove the item with ID '{record_id}' from '{request.resource}' because it's "
            "connected to other items in your system. Please remove the related items first."
        )
    except StoreFailure as e:
        return failure(f"A system error occurred while removing this item: {e}")
    except Exception as e:
        logger.error(f"Delete on '{resource}' failed: {e}", exc_info=True)
        return failure(f"Unable to remove your item: {e}")
