from dataclasses import dataclass

import pytest

from kubeletkit.podutils import (
    EnvVar,
    ObjectMeta,
    Service,
    ServicePort,
    convert_downward_api_field_label,
    extract_field_path_as_string,
    format_map,
    from_services,
    is_qualified_name,
    is_service_ip_set,
    split_maybe_subscripted_path,
)


@pytest.mark.parametrize(
    "path, expected",
    [
        ("metadata.annotations['myKey']", ("metadata.annotations", "myKey", True)),
        ("metadata.annotations['a[b]c']", ("metadata.annotations", "a[b]c", True)),
        ("metadata.labels['']", ("metadata.labels", "", True)),
        ("metadata.labels", ("metadata.labels", "", False)),
    ],
)
def test_split_documented_examples(path, expected):
    assert split_maybe_subscripted_path(path) == expected


@pytest.mark.parametrize("path", ["['x']", "metadata.labels']", "foo['bar"])
def test_split_not_subscripted(path):
    assert split_maybe_subscripted_path(path) == (path, "", False)


def test_convert_unsupported_version():
    with pytest.raises(ValueError, match="unsupported pod version"):
        convert_downward_api_field_label("v2", "metadata.name", "x")


@pytest.mark.parametrize(
    "label", ["metadata.name", "status.podIPs", "spec.schedulerName", "metadata.labels['a']"]
)
def test_convert_supported_passthrough(label):
    assert convert_downward_api_field_label("v1", label, "val") == (label, "val")


def test_convert_spec_host_alias():
    assert convert_downward_api_field_label("v1", "spec.host", "val") == ("spec.nodeName", "val")


@pytest.mark.parametrize("label", ["spec.containers['x']", "spec.foo"])
def test_convert_rejects(label):
    with pytest.raises(ValueError):
        convert_downward_api_field_label("v1", label, "val")


def test_format_map_sorted_and_quoted():
    assert format_map({"b": "2", "a": "1"}) == 'a="1"\nb="2"'
    assert format_map({}) == ""


def test_format_map_escapes():
    rendered = format_map({"k": 'say "hi"\n'})
    assert rendered.count("\n") == 0
    assert rendered.startswith("k=")


@pytest.mark.parametrize("ip, expected", [("None", False), ("", False), ("10.0.0.1", True)])
def test_is_service_ip_set(ip, expected):
    assert is_service_ip_set(Service("svc", ip, [ServicePort(80)])) is expected


def test_from_services_skips_headless():
    assert from_services([Service("a", "None", [ServicePort(80)]), Service("b", "")]) == []


def test_from_services_variables():
    service = Service(
        "my-svc",
        "10.0.0.1",
        [ServicePort(80), ServicePort(443, "https-port", "UDP")],
    )
    env = {var.name: var.value for var in from_services([service])}
    assert env["MY_SVC_SERVICE_HOST"] == "10.0.0.1"
    assert env["MY_SVC_SERVICE_PORT"] == "80"
    assert env["MY_SVC_SERVICE_PORT_HTTPS_PORT"] == "443"
    assert env["MY_SVC_PORT"] == "tcp://10.0.0.1:80"
    assert env["MY_SVC_PORT_443_UDP_PROTO"] == "udp"
    assert all(value for value in env.values())


def test_from_services_first_link_matches_first_port_var():
    env = from_services([Service("db", "10.1.2.3", [ServicePort(5432), ServicePort(1, "x")])])
    names = [var.name for var in env]
    assert len(names) == len(set(names))
    link = next(var for var in env if var.name.endswith("_PORT") and "_SERVICE_" not in var.name
                and var.name.count("_") == 1)
    assert link.value.endswith(":5432")


def test_from_services_ipv6_brackets():
    env = from_services([Service("v6", "::1", [ServicePort(80)])])
    urls = [var.value for var in env if "://" in var.value]
    assert urls
    assert all("[::1]:80" in url for url in urls)


def test_from_services_no_ports():
    with pytest.raises(ValueError):
        from_services([Service("x", "10.0.0.1", [])])


def test_from_services_exact_order():
    env = from_services([Service("redis", "10.0.0.11", [ServicePort(6379)])])
    assert env == [
        EnvVar("REDIS_SERVICE_HOST", "10.0.0.11"),
        EnvVar("REDIS_SERVICE_PORT", "6379"),
        EnvVar("REDIS_PORT", "tcp://10.0.0.11:6379"),
        EnvVar("REDIS_PORT_6379_TCP", "tcp://10.0.0.11:6379"),
        EnvVar("REDIS_PORT_6379_TCP_PROTO", "tcp"),
        EnvVar("REDIS_PORT_6379_TCP_PORT", "6379"),
        EnvVar("REDIS_PORT_6379_TCP_ADDR", "10.0.0.11"),
    ]


@pytest.fixture
def meta():
    return ObjectMeta(
        name="pod-a",
        namespace="ns",
        uid="uid-1",
        labels={"app": "web", "tier": "front"},
        annotations={"note": "hello"},
    )


@pytest.mark.parametrize(
    "path, attr",
    [("metadata.name", "name"), ("metadata.namespace", "namespace"), ("metadata.uid", "uid")],
)
def test_extract_plain_fields(meta, path, attr):
    assert extract_field_path_as_string(meta, path) == getattr(meta, attr)


def test_extract_maps(meta):
    assert extract_field_path_as_string(meta, "metadata.labels") == format_map(meta.labels)
    assert extract_field_path_as_string(meta, "metadata.annotations") == format_map(meta.annotations)


def test_extract_subscripts(meta):
    assert extract_field_path_as_string(meta, "metadata.labels['app']") == "web"
    assert extract_field_path_as_string(meta, "metadata.annotations['note']") == "hello"
    assert extract_field_path_as_string(meta, "metadata.labels['missing']") == ""


def test_extract_through_metadata_attribute(meta):
    @dataclass
    class Pod:
        metadata: ObjectMeta

    assert extract_field_path_as_string(Pod(meta), "metadata.name") == meta.name


def test_extract_errors(meta):
    with pytest.raises(ValueError, match="invalid key subscript"):
        extract_field_path_as_string(meta, "metadata.labels['-bad-']")
    with pytest.raises(ValueError, match="does not support subscript"):
        extract_field_path_as_string(meta, "spec.nodeName['x']")
    with pytest.raises(ValueError, match="unsupported fieldPath"):
        extract_field_path_as_string(meta, "spec.nodeName")
    with pytest.raises(TypeError):
        extract_field_path_as_string(object(), "metadata.name")


@pytest.mark.parametrize("name", ["MyName", "my.name", "123-abc", "example.com/MyName"])
def test_qualified_name_valid(name):
    assert is_qualified_name(name) == []


@pytest.mark.parametrize(
    "name", ["", "-start", "a" * 64, "/name", "Bad_Prefix/name", "a/b/c", "prefix/"]
)
def test_qualified_name_invalid(name):
    errors = is_qualified_name(name)
    assert len(errors) >= 1
    assert all(isinstance(message, str) and message for message in errors)