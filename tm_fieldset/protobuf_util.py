"""Protocol Buffer serialization for field set messages.

This module handles conversion between wire payloads and typed Python values
for the three message kinds the client exchanges with Tournament Manager:

- ``FieldSetNotice`` (inbound), decoded into a tagged notice variant
- ``FieldSetRequest`` (outbound), wrapping a ``FieldControlRequest``

The schema is owned by the server. A descriptor mirroring ``fieldset.proto``
is built at import time; ``load_schema`` accepts a compiled descriptor set
when the server's own schema is available.

Obfuscation is not handled here, see ``protocol``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from functools import cache
from pathlib import Path
from typing import Any

from google.protobuf import descriptor_pb2, descriptor_pool, json_format, message_factory
from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.protobuf.message import Message

from .errors import DecodeError, NoActiveFieldError, TMSchemaError

_LOGGER = logging.getLogger(__name__)

SCHEMA_FILE_NAME = "fieldset.proto"

NOTICE_MESSAGE = "FieldSetNotice"
REQUEST_MESSAGE = "FieldSetRequest"
FIELD_CONTROL_MESSAGE = "FieldControlRequest"

# Notice discriminator carrying the currently active field
FIELD_ACTIVATED_NOTICE_ID = 8

_FieldProto = descriptor_pb2.FieldDescriptorProto


class FieldControlCommand(IntEnum):
    """Field control request codes."""

    NONE = 0
    START_MATCH = 1
    END_EARLY = 2
    ABORT = 3
    RESET_TIMER = 4


@dataclass(frozen=True)
class FieldControlRequest:
    """Outbound field control intent, ready to encode."""

    command: FieldControlCommand
    field_id: int


@dataclass(frozen=True)
class GenericNotice:
    """Notice variant this client does not interpret."""

    notice_id: int
    message: Message = field(repr=False, compare=False)


@dataclass(frozen=True)
class FieldActivatedNotice:
    """Notice announcing the currently active field."""

    field_id: int
    message: Message = field(repr=False, compare=False)

    @property
    def notice_id(self) -> int:
        return FIELD_ACTIVATED_NOTICE_ID


Notice = GenericNotice | FieldActivatedNotice


@dataclass(frozen=True)
class FieldSetSchema:
    """Message classes for the field set protocol."""

    notice: type[Message]
    request: type[Message]
    field_control: type[Message]

    @classmethod
    def from_pool(
        cls, pool: descriptor_pool.DescriptorPool, package: str = ""
    ) -> FieldSetSchema:
        """Resolve the message classes from a descriptor pool.

        Args:
            pool: Pool holding the field set file descriptor
            package: Protobuf package of the messages, if any

        Raises:
            TMSchemaError: If a message or one of its fields is missing
        """
        prefix = f"{package}." if package else ""
        required = {
            NOTICE_MESSAGE: ("id", "fieldId"),
            REQUEST_MESSAGE: ("fieldControl",),
            FIELD_CONTROL_MESSAGE: ("id", "fieldId"),
        }

        classes: dict[str, type[Message]] = {}
        for name, field_names in required.items():
            try:
                descriptor = pool.FindMessageTypeByName(prefix + name)
            except KeyError as err:
                raise TMSchemaError(f"Schema has no message {prefix}{name}") from err
            missing = [f for f in field_names if f not in descriptor.fields_by_name]
            if missing:
                raise TMSchemaError(
                    f"Message {prefix}{name} is missing fields: {', '.join(missing)}"
                )
            classes[name] = message_factory.GetMessageClass(descriptor)

        return cls(
            notice=classes[NOTICE_MESSAGE],
            request=classes[REQUEST_MESSAGE],
            field_control=classes[FIELD_CONTROL_MESSAGE],
        )


def _add_int32_field(
    message: descriptor_pb2.DescriptorProto, name: str, number: int
) -> None:
    message.field.add(
        name=name,
        number=number,
        label=_FieldProto.LABEL_OPTIONAL,
        type=_FieldProto.TYPE_INT32,
    )


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    """Build the descriptor equivalent of ``fieldset.proto``."""
    file_proto = descriptor_pb2.FileDescriptorProto(
        name=SCHEMA_FILE_NAME,
        syntax="proto2",
    )

    for name in (NOTICE_MESSAGE, FIELD_CONTROL_MESSAGE):
        message = file_proto.message_type.add(name=name)
        _add_int32_field(message, "id", 1)
        _add_int32_field(message, "fieldId", 2)

    request = file_proto.message_type.add(name=REQUEST_MESSAGE)
    request.field.add(
        name="fieldControl",
        number=1,
        label=_FieldProto.LABEL_OPTIONAL,
        type=_FieldProto.TYPE_MESSAGE,
        type_name=f".{FIELD_CONTROL_MESSAGE}",
    )

    return file_proto


@cache
def default_schema() -> FieldSetSchema:
    """Get the built-in field set schema."""
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(build_file_descriptor().SerializeToString())
    return FieldSetSchema.from_pool(pool)


def load_schema(path: str | Path, *, package: str = "") -> FieldSetSchema:
    """Load the field set schema from a compiled descriptor set.

    The file is the output of ``protoc --include_imports
    --descriptor_set_out=<path> fieldset.proto``.

    Args:
        path: Descriptor set file
        package: Protobuf package of the field set messages

    Returns:
        Schema resolved from the descriptor set

    Raises:
        TMSchemaError: If the file cannot be read or lacks a required message
    """
    try:
        raw = Path(path).read_bytes()
    except OSError as err:
        raise TMSchemaError(f"Cannot read descriptor set {path}") from err

    descriptor_set = descriptor_pb2.FileDescriptorSet()
    try:
        descriptor_set.ParseFromString(raw)
    except ProtobufDecodeError as err:
        raise TMSchemaError(f"Invalid descriptor set {path}") from err

    pool = descriptor_pool.DescriptorPool()
    for file_proto in descriptor_set.file:
        pool.AddSerializedFile(file_proto.SerializeToString())

    schema = FieldSetSchema.from_pool(pool, package)
    _LOGGER.debug("Loaded field set schema from %s", path)
    return schema


def build_field_control_request(
    command: FieldControlCommand,
    field_id: int | None,
    schema: FieldSetSchema | None = None,
) -> Message:
    """Build a ``FieldSetRequest`` wrapping a field control payload.

    Args:
        command: Field control code
        field_id: Target field, the latest one announced by the server

    Returns:
        Protobuf ``FieldSetRequest`` message

    Raises:
        NoActiveFieldError: If no field id is known
    """
    if field_id is None:
        raise NoActiveFieldError(
            f"Cannot send {command.name}: no active field has been announced"
        )

    schema = schema or default_schema()
    field_control = schema.field_control(id=int(command), fieldId=field_id)
    return schema.request(fieldControl=field_control)


def encode_request(
    request: FieldControlRequest | Message,
    schema: FieldSetSchema | None = None,
) -> bytes:
    """Serialize an outbound request to binary.

    Args:
        request: Field control intent or an already built ``FieldSetRequest``

    Returns:
        Binary-serialized ``FieldSetRequest``
    """
    if isinstance(request, FieldControlRequest):
        request = build_field_control_request(request.command, request.field_id, schema)
    return request.SerializeToString()


def decode_notice(data: bytes, schema: FieldSetSchema | None = None) -> Notice:
    """Deserialize a ``FieldSetNotice`` payload.

    Args:
        data: Deobfuscated frame payload

    Returns:
        ``FieldActivatedNotice`` for active field announcements,
        ``GenericNotice`` for everything else

    Raises:
        DecodeError: If the payload is not a valid notice
    """
    schema = schema or default_schema()
    message = schema.notice()
    try:
        message.ParseFromString(data)
    except ProtobufDecodeError as err:
        raise DecodeError(f"Malformed {NOTICE_MESSAGE}: {err}") from err

    # Absent fields read as their default of 0
    if message.id == FIELD_ACTIVATED_NOTICE_ID:
        return FieldActivatedNotice(field_id=message.fieldId, message=message)

    return GenericNotice(notice_id=message.id, message=message)


def notice_to_dict(message: Message) -> dict[str, Any]:
    """Convert a protobuf message to a dict for logging."""
    return json_format.MessageToDict(message, preserving_proto_field_name=True)
