# BotWatcher — descriptor parser
#
# A descriptor file holds a single line of the form
#     name
#     name|key1=val1^key2=val2^...
#
# Names and keys are word characters only. Values may also contain spaces.

import re
from dataclasses import dataclass
from typing import Tuple

from .errors import DescriptorError

NAME_SEPARATOR = "|"
PAIR_SEPARATOR = "^"
KEY_VALUE_SEPARATOR = "="

NAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")
KEY_PATTERN = NAME_PATTERN
VALUE_PATTERN = re.compile(r"[A-Za-z0-9_ ]+")


@dataclass(frozen=True)
class JobDescriptor:
    """A validated job name plus its ordered argument pairs."""
    job_name: str
    arguments: Tuple[Tuple[str, str], ...] = ()

    @property
    def argument_string(self) -> str:
        return serialize_arguments(self.arguments)

    def to_content(self) -> str:
        """Render back into descriptor file content."""
        if not self.arguments:
            return self.job_name
        return f"{self.job_name}{NAME_SEPARATOR}{self.argument_string}"


def validate_name(name: str) -> bool:
    return bool(name and NAME_PATTERN.fullmatch(name))


def validate_key(key: str) -> bool:
    return bool(key and KEY_PATTERN.fullmatch(key))


def validate_value(value: str) -> bool:
    """Word characters and spaces; a value of only spaces is allowed."""
    return bool(value and VALUE_PATTERN.fullmatch(value))


def serialize_arguments(arguments) -> str:
    return PAIR_SEPARATOR.join(
        f"{key}{KEY_VALUE_SEPARATOR}{value}" for key, value in arguments
    )


def _parse_pair(token: str) -> Tuple[str, str]:
    if token.count(KEY_VALUE_SEPARATOR) != 1:
        raise DescriptorError(
            f"Argument \"{token}\" must contain exactly one '{KEY_VALUE_SEPARATOR}'",
            token=token,
        )
    raw_key, raw_value = token.split(KEY_VALUE_SEPARATOR, 1)
    key = raw_key.strip()
    # Each value is trimmed on its own; a value made only of spaces is kept
    value = raw_value.strip() or raw_value
    if not validate_key(key):
        raise DescriptorError(f"Invalid argument key \"{key}\" in \"{token}\"", token=token)
    if not validate_value(value):
        raise DescriptorError(f"Invalid argument value \"{value}\" in \"{token}\"", token=token)
    return key, value


def parse_arguments(blob: str) -> Tuple[Tuple[str, str], ...]:
    """Split a ``k=v^k=v`` blob into ordered pairs. A blank blob yields none."""
    if not blob.strip():
        return ()
    return tuple(_parse_pair(token) for token in blob.split(PAIR_SEPARATOR))


def parse(raw: str) -> JobDescriptor:
    """
    Parse descriptor content into a JobDescriptor.

    Raises DescriptorError naming the offending token on any structural
    or pattern violation.
    """
    name, sep, blob = raw.partition(NAME_SEPARATOR)
    name = name.strip()
    if not validate_name(name):
        raise DescriptorError(f"Found \"{name}\" as job name. Cannot proceed", token=name)
    if not sep:
        return JobDescriptor(job_name=name)
    return JobDescriptor(job_name=name, arguments=parse_arguments(blob.rstrip("\r\n")))
