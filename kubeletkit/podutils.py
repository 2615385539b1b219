"""Pod helpers: service environment variables and downward API field paths."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

CLUSTER_IP_NONE = "None"
PROTOCOL_TCP = "TCP"

_NAME_MAX_LENGTH = 63
_DNS1123_SUBDOMAIN_MAX_LENGTH = 253
_QUALIFIED_NAME_RE = re.compile(r"([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]")
_DNS1123_SUBDOMAIN_RE = re.compile(
    r"[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*"
)

_SUPPORTED_LABELS = frozenset(
    {
        "metadata.annotations",
        "metadata.labels",
        "metadata.name",
        "metadata.namespace",
        "metadata.uid",
        "spec.nodeName",
        "spec.restartPolicy",
        "spec.serviceAccountName",
        "spec.schedulerName",
        "status.phase",
        "status.hostIP",
        "status.podIP",
        "status.podIPs",
    }
)
_SUBSCRIPTABLE = frozenset({"metadata.annotations", "metadata.labels"})


@dataclass(frozen=True)
class EnvVar:
    name: str
    value: str


@dataclass
class ServicePort:
    port: int
    name: str = ""
    protocol: str = ""


@dataclass
class Service:
    name: str
    cluster_ip: str = ""
    ports: list[ServicePort] = field(default_factory=list)


@dataclass
class ObjectMeta:
    name: str = ""
    namespace: str = ""
    uid: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


def is_service_ip_set(service: Service) -> bool:
    """Whether the service has a usable cluster IP."""
    return service.cluster_ip not in (CLUSTER_IP_NONE, "")


def _env_name(name: str) -> str:
    return name.replace("-", "_").upper()


def _join_host_port(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _link_variables(service: Service) -> list[EnvVar]:
    prefix = _env_name(service.name)
    result: list[EnvVar] = []
    for position, sp in enumerate(service.ports):
        protocol = sp.protocol or PROTOCOL_TCP
        scheme = protocol.lower()
        url = f"{scheme}://{_join_host_port(service.cluster_ip, sp.port)}"
        if position == 0:
            result.append(EnvVar(f"{prefix}_PORT", url))
        port_prefix = f"{prefix}_PORT_{sp.port}_{protocol.upper()}"
        result.extend(
            [
                EnvVar(port_prefix, url),
                EnvVar(f"{port_prefix}_PROTO", scheme),
                EnvVar(f"{port_prefix}_PORT", str(sp.port)),
                EnvVar(f"{port_prefix}_ADDR", service.cluster_ip),
            ]
        )
    return result


def from_services(services: Iterable[Service]) -> list[EnvVar]:
    """Build the environment variables that point a container at services."""
    result: list[EnvVar] = []
    for service in services:
        if not is_service_ip_set(service):
            continue
        if not service.ports:
            raise ValueError(f"service {service.name!r} has no ports")
        prefix = _env_name(service.name)
        result.append(EnvVar(f"{prefix}_SERVICE_HOST", service.cluster_ip))
        port_name = f"{prefix}_SERVICE_PORT"
        result.append(EnvVar(port_name, str(service.ports[0].port)))
        result.extend(
            EnvVar(f"{port_name}_{_env_name(sp.name)}", str(sp.port))
            for sp in service.ports
            if sp.name
        )
        result.extend(_link_variables(service))
    return result


def split_maybe_subscripted_path(field_path: str) -> tuple[str, str, bool]:
    """Split ``path['subscript']`` into its parts.

    Returns ``(path, subscript, True)`` for a subscripted path, otherwise
    ``(field_path, "", False)``.
    """
    if not field_path.endswith("']"):
        return field_path, "", False
    path, sep, subscript = field_path[:-2].partition("['")
    if not sep or not path:
        return field_path, "", False
    return path, subscript, True


def convert_downward_api_field_label(version: str, label: str, value: str) -> tuple[str, str]:
    """Normalise a downward API field label; raises ValueError if unsupported."""
    if version != "v1":
        raise ValueError(f"unsupported pod version: {version}")
    path, _, subscripted = split_maybe_subscripted_path(label)
    if subscripted:
        if path in _SUBSCRIPTABLE:
            return label, value
        raise ValueError(f"field label does not support subscript: {label}")
    if label in _SUPPORTED_LABELS:
        return label, value
    if label == "spec.host":
        return "spec.nodeName", value
    raise ValueError(f"field label not supported: {label}")


def _is_dns1123_subdomain(value: str) -> list[str]:
    errors = []
    if len(value) > _DNS1123_SUBDOMAIN_MAX_LENGTH:
        errors.append(f"must be no more than {_DNS1123_SUBDOMAIN_MAX_LENGTH} characters")
    if not _DNS1123_SUBDOMAIN_RE.fullmatch(value):
        errors.append(
            "a lowercase RFC 1123 subdomain must consist of lower case alphanumeric "
            "characters, '-' or '.', and must start and end with an alphanumeric character"
        )
    return errors


def is_qualified_name(value: str) -> list[str]:
    """Validate an optionally prefixed qualified name; returns error messages."""
    errors: list[str] = []
    parts = value.split("/")
    if len(parts) == 1:
        name = parts[0]
    elif len(parts) == 2:
        prefix, name = parts
        if not prefix:
            errors.append("prefix part must be non-empty")
        else:
            errors.extend(f"prefix part {msg}" for msg in _is_dns1123_subdomain(prefix))
    else:
        return [
            "a qualified name must consist of alphanumeric characters, '-', '_' or '.', "
            "with an optional DNS subdomain prefix and '/'"
        ]
    if not name:
        errors.append("name part must be non-empty")
    elif len(name) > _NAME_MAX_LENGTH:
        errors.append(f"name part must be no more than {_NAME_MAX_LENGTH} characters")
    if name and not _QUALIFIED_NAME_RE.fullmatch(name):
        errors.append(
            "name part must consist of alphanumeric characters, '-', '_' or '.', "
            "and must start and end with an alphanumeric character"
        )
    return errors


_QUOTE_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


def _quote(text: str) -> str:
    out = []
    for ch in text:
        if ch in _QUOTE_ESCAPES:
            out.append(_QUOTE_ESCAPES[ch])
        elif ch.isprintable():
            out.append(ch)
        elif ord(ch) < 0x80:
            out.append(f"\\x{ord(ch):02x}")
        elif ord(ch) < 0x10000:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(f"\\U{ord(ch):08x}")
    return '"' + "".join(out) + '"'


def format_map(m: Mapping[str, str]) -> str:
    """Render a map as ``key="value"`` lines in key order."""
    return "\n".join(f"{key}={_quote(m[key])}" for key in sorted(m))


def _metadata_of(obj: Any) -> ObjectMeta:
    if isinstance(obj, ObjectMeta):
        return obj
    meta = getattr(obj, "metadata", None)
    if isinstance(meta, ObjectMeta):
        return meta
    raise TypeError(f"object does not carry metadata: {type(obj).__name__}")


def extract_field_path_as_string(obj: Any, field_path: str) -> str:
    """Read a metadata field of *obj* by its downward API path."""
    meta = _metadata_of(obj)
    path, subscript, subscripted = split_maybe_subscripted_path(field_path)
    if subscripted:
        if path == "metadata.annotations":
            errors = is_qualified_name(subscript.lower())
            if errors:
                raise ValueError(f"invalid key subscript in {field_path}: {';'.join(errors)}")
            return meta.annotations.get(subscript, "")
        if path == "metadata.labels":
            errors = is_qualified_name(subscript)
            if errors:
                raise ValueError(f"invalid key subscript in {field_path}: {';'.join(errors)}")
            return meta.labels.get(subscript, "")
        raise ValueError(f'fieldPath "{field_path}" does not support subscript')

    if field_path == "metadata.annotations":
        return format_map(meta.annotations)
    if field_path == "metadata.labels":
        return format_map(meta.labels)
    if field_path == "metadata.name":
        return meta.name
    if field_path == "metadata.namespace":
        return meta.namespace
    if field_path == "metadata.uid":
        return meta.uid
    raise ValueError(f"unsupported fieldPath: {field_path}")