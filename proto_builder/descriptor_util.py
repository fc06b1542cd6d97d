"""Select the messages to generate builders for."""

from __future__ import annotations

from collections import deque
from enum import IntEnum
import logging

from google.protobuf.descriptor_pb2 import FieldDescriptorProto

from proto_builder.core import CheckError, NotFoundError
from proto_builder.schema import FileDescriptor, MessageDescriptor, SchemaPool
from proto_builder.util import get_key_value_types

_LOGGER = logging.getLogger(__name__)


class MessageSearchMode(IntEnum):
    EXPLICIT = 0  # Only the listed messages.
    ALL_TOP_LEVEL = 1  # "*": all top level messages.
    TRANSITIVE_REPEATED = 2  # "*+": top level and all used in repeated fields.
    TRANSITIVE_ALL = 3  # "**": full transitive closure.


SEARCH_MODES = {
    "**": MessageSearchMode.TRANSITIVE_ALL,
    "*+": MessageSearchMode.TRANSITIVE_REPEATED,
    "*": MessageSearchMode.ALL_TOP_LEVEL,
}


def get_descriptors_from(
    file: FileDescriptor, search_mode: MessageSearchMode
) -> list[MessageDescriptor]:
    """Collect messages of `file` starting from its top level messages.

    The transitive modes walk message fields breadth first. Messages from
    other files are never collected.
    """
    descriptors = list(file.message_types)
    if search_mode in (MessageSearchMode.EXPLICIT, MessageSearchMode.ALL_TOP_LEVEL):
        return descriptors
    queue = deque(descriptors)
    queued = set(descriptors)
    while queue:
        message = queue.popleft()
        for field in message.fields:
            if field.type != FieldDescriptorProto.TYPE_MESSAGE:
                continue
            is_map = field.is_map
            is_repeated = field.is_repeated
            if is_map:
                # Only map values can be messages; the map entry itself is
                # not traversed.
                _, value = get_key_value_types(field)
                if value.type != FieldDescriptorProto.TYPE_MESSAGE:
                    continue
                field = value
            msg = field.message_type
            if msg is None or msg in descriptors:
                continue
            if msg.file is not file:
                continue
            if (
                is_map
                or is_repeated
                or search_mode == MessageSearchMode.TRANSITIVE_ALL
            ):
                descriptors.append(msg)
            if msg not in queued:
                queued.add(msg)
                queue.append(msg)
    return descriptors


class DescriptorUtil:
    def __init__(
        self, search_mode: MessageSearchMode, descriptors: list[MessageDescriptor]
    ) -> None:
        self.search_mode = search_mode
        self.descriptors = descriptors

    @classmethod
    def load(
        cls,
        proto_flag: str,
        pool: SchemaPool,
        proto_files: list[str] | None = None,
    ) -> DescriptorUtil:
        """Resolve `<messages>:<file>[,<file>...]` against `pool`.

        `<messages>` is either a comma separated list of full message names,
        or one of `*`, `*+` and `**` which select from the first file.
        """
        names, _, files = proto_flag.partition(":")
        search_mode = SEARCH_MODES.get(names, MessageSearchMode.EXPLICIT)
        proto_files = list(proto_files or []) + [
            file for file in files.split(",") if file
        ]
        missing = [file for file in proto_files if pool.find_file_by_name(file) is None]
        if missing:
            raise NotFoundError(f"Could not load proto_db: ({','.join(proto_files)})")

        if search_mode != MessageSearchMode.EXPLICIT:
            if not proto_files:
                raise CheckError("At least one proto_files required, none given")
            file = pool.find_file_by_name(proto_files[0])
            descriptors = get_descriptors_from(file, search_mode)
        else:
            descriptors = []
            for name in names.split(","):
                descriptor = pool.find_message_type_by_name(name)
                if descriptor is None:
                    raise NotFoundError(f"FieldDescriptor not found for: '{name}'")
                descriptors.append(descriptor)
        _LOGGER.debug(
            "Selected %d message(s): %s",
            len(descriptors),
            ", ".join(d.full_name for d in descriptors),
        )
        return cls(search_mode, descriptors)

    def get_full_names(self) -> list[str]:
        return sorted({descriptor.full_name for descriptor in self.descriptors})
