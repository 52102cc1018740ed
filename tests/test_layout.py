import logging

from conftest import make_template

from signage.services.layout import Box, CoordinateResolver, CoordinateTable, lookup
from signage.services.template import Field


def _chain_fields() -> list[Field]:
    return [
        Field(id="A", left=10, top=10, right=110, bottom=60),
        Field(id="B", left="A.right", top="A.top", right="width", bottom="A.bottom"),
        Field(id="C", left="A.left", top="B.bottom", right="B.right", bottom="height"),
    ]


def _run(template, order=None):
    drawn: list[tuple[str, Box]] = []

    def render(field_: Field, box: Box, table: CoordinateTable) -> None:
        drawn.append((field_.id, box))

    resolver = CoordinateResolver(template, render, order=order)
    unresolved = resolver.run()
    return resolver, drawn, unresolved


def test_lookup() -> None:
    assert lookup(5, {}) == 5.0
    assert lookup("A.left", {"A.left": 3.0}) == 3.0
    assert lookup("A.left", {}) is None


def test_resolves_references_between_fields() -> None:
    template = make_template(*_chain_fields())
    resolver, drawn, unresolved = _run(template)

    assert unresolved == []
    assert dict(drawn)["B"] == Box(left=110, top=10, right=600, bottom=60)
    assert dict(drawn)["C"] == Box(left=10, top=60, right=600, bottom=800)
    assert resolver.table["B.width"] == 490
    assert resolver.table["C.height"] == 740


def test_result_does_not_depend_on_declaration_order() -> None:
    template = make_template(*_chain_fields())
    forward, _, _ = _run(template, order=["A", "B", "C"])
    backward, drawn, _ = _run(template, order=["C", "B", "A"])

    assert forward.table == backward.table
    assert [fid for fid, _ in drawn] == ["A", "B", "C"]


def test_keys_written_by_the_renderer_unlock_fields() -> None:
    template = make_template(
        Field(id="PRICE", left=0, top=0, right=100, bottom=50),
        Field(id="CENTS", left="PRICE.separator", top="PRICE.bottom", right="PRICE.right", bottom=80),
    )

    def render(field_: Field, box: Box, table: CoordinateTable) -> None:
        if field_.id == "PRICE":
            table["PRICE.separator"] = 70.0

    resolver = CoordinateResolver(template, render)
    assert resolver.run() == []
    assert resolver.table["CENTS.left"] == 70.0


def test_missing_reference_is_dropped_and_logged(caplog) -> None:
    template = make_template(
        Field(id="A", left=0, top=0, right=10, bottom=10),
        Field(id="X", left="NOPE.right", top=0, right=100, bottom=10),
    )
    with caplog.at_level(logging.WARNING):
        resolver, drawn, unresolved = _run(template)

    assert unresolved == ["X"]
    assert [fid for fid, _ in drawn] == ["A"]
    assert resolver.resolved == ["A"]
    # Known edges of a pending field are still published.
    assert resolver.table["X.right"] == 100
    assert "X.left" not in resolver.table
    assert any(r.getMessage() == "FIELDS_UNRESOLVED" for r in caplog.records)


def test_cycle_terminates() -> None:
    template = make_template(
        Field(id="A", left="B.right", top=0, right=10, bottom=10),
        Field(id="B", left=0, top=0, right="A.left", bottom=10),
    )
    _, drawn, unresolved = _run(template)
    assert drawn == []
    assert unresolved == ["A", "B"]
