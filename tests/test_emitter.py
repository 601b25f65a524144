import yaml

from dronepipe.emitter import document_to_dicts, dump_document
from dronepipe.loader import parse_document


def test_emitted_mappings_equal_declared_mappings(drone_file, document):
    declared = [d for d in yaml.safe_load_all(drone_file.read_text(encoding="utf-8")) if d is not None]
    assert document_to_dicts(document) == declared


def test_parse_emit_is_idempotent(document):
    once = dump_document(document)
    again = dump_document(parse_document(once))
    assert once == again
    assert parse_document(once) == document


def test_canonical_key_order(document):
    d = document_to_dicts(document)[1]
    assert list(d) == ["kind", "name", "depends_on", "trigger", "steps", "volumes"]
    step = d["steps"][0]
    assert list(step) == ["name", "image", "commands", "volumes", "when"]


def test_constraint_shape_survives(document):
    when = document_to_dicts(document)[1]["steps"][0]["when"]
    assert when == {"branch": "master", "event": ["push"]}


def test_secret_refs_are_written_back():
    doc = parse_document(
        "kind: pipeline\nname: a\nsteps:\n  - name: s\n    image: x\n    commands: [env]\n"
        "    environment:\n      TOKEN:\n        from_secret: api_token\n"
    )
    out = dump_document(doc)
    assert "from_secret: api_token" in out


def test_include_exclude_mapping_round_trip():
    text = (
        "kind: pipeline\nname: a\ntrigger:\n  branch:\n    exclude:\n    - wip/*\n"
        "steps:\n- name: s\n  image: x\n  commands:\n  - ls\n"
    )
    doc = parse_document(text)
    assert document_to_dicts(doc)[0]["trigger"] == {"branch": {"exclude": ["wip/*"]}}


def test_documents_are_separated(document):
    out = dump_document(document)
    assert out.startswith("---\n")
    assert out.count("\n---\n") == 1


def test_volume_and_mount_extras_round_trip():
    text = (
        "kind: pipeline\nname: a\nsteps:\n- name: s\n  image: x\n  commands:\n  - ls\n"
        "  volumes:\n  - name: c\n    path: /c\n    read_only: true\n"
        "volumes:\n- name: c\n  host:\n    path: /tmp/c\n    type: Directory\n  labels: keep\n"
    )
    declared = list(yaml.safe_load_all(text))
    assert document_to_dicts(parse_document(text)) == declared
