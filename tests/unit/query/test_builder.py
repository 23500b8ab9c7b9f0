"""Tests for the query expansion builder and validator."""

import json
from typing import Any

import pytest

from auditlens.errors import ConfigError
from auditlens.query.builder import MAX_EXPANSION_DEPTH, build, id_field, parse


def node(
    property_name: str,
    related: str,
    many_to_many: bool = False,
    expand: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    item: dict[str, Any] = {
        "propertyName": property_name,
        "relatedEntityLogicalName": related,
        "isManyToMany": many_to_many,
    }
    if expand is not None:
        item["expand"] = expand
    return item


def chain(depth: int) -> dict[str, Any]:
    """Descriptor whose expansions nest ``depth`` levels deep."""
    expansion = node(f"level{depth}", f"entity{depth}")
    for level in range(depth - 1, 0, -1):
        expansion = node(f"level{level}", f"entity{level}", expand=[expansion])
    return {"primaryEntityLogicalName": "ardea_booking", "expand": [expansion]}


class TestParse:
    """Tests for descriptor validation."""

    def test_parses_json_descriptor(self) -> None:
        descriptor = json.dumps({
            "primaryEntityLogicalName": "ardea_booking",
            "expand": [node("ardea_party_Booking", "ardea_party")],
        })

        plan = parse(descriptor)

        assert plan.primary_entity_type_name == "ardea_booking"
        assert len(plan.expansion) == 1
        assert plan.expansion[0].property_name == "ardea_party_Booking"
        assert plan.expansion[0].related_entity_type_name == "ardea_party"
        assert plan.expansion[0].is_many_to_many is False
        assert plan.expansion[0].nested_expansion is None

    def test_descriptor_without_expansion(self) -> None:
        plan = parse({"primaryEntityLogicalName": "contact"})
        assert plan.expansion == ()

    def test_accepts_maximum_depth(self) -> None:
        plan = parse(chain(MAX_EXPANSION_DEPTH))

        depth = 0
        nodes = plan.expansion
        while nodes:
            depth += 1
            nodes = nodes[0].nested_expansion
        assert depth == MAX_EXPANSION_DEPTH

    def test_depth_five_fails(self) -> None:
        """Expansions nested five levels deep always fail."""
        with pytest.raises(ConfigError, match="Maximum expansion depth 4 exceeded"):
            parse(chain(5))

    def test_many_to_many_with_nesting_fails(self) -> None:
        """A many-to-many node and a nested node cannot share a tree."""
        descriptor = {
            "primaryEntityLogicalName": "ardea_booking",
            "expand": [
                node("ardea_Booking_Contact_Attendees", "contact", many_to_many=True),
                node(
                    "ardea_party_Booking",
                    "ardea_party",
                    expand=[node("ardea_party_Guest", "ardea_guest")],
                ),
            ],
        }
        with pytest.raises(ConfigError, match="Many-to-many expansions cannot be combined"):
            parse(descriptor)

    def test_nested_many_to_many_fails(self) -> None:
        """The rule also applies when the many-to-many node is the nested one."""
        descriptor = {
            "primaryEntityLogicalName": "ardea_booking",
            "expand": [
                node(
                    "ardea_party_Booking",
                    "ardea_party",
                    expand=[node("ardea_party_Guests", "contact", many_to_many=True)],
                ),
            ],
        }
        with pytest.raises(ConfigError, match="Many-to-many"):
            parse(descriptor)

    def test_many_to_many_at_first_level_allowed(self) -> None:
        descriptor = {
            "primaryEntityLogicalName": "ardea_booking",
            "expand": [
                node("ardea_Booking_Contact_Attendees", "contact", many_to_many=True),
                node("ardea_party_Booking", "ardea_party"),
            ],
        }
        plan = parse(descriptor)
        assert [n.is_many_to_many for n in plan.expansion] == [True, False]

    @pytest.mark.parametrize(
        "descriptor,message",
        [
            ("{not json", "not valid JSON"),
            ("[]", "must be a JSON object"),
            ({"primaryEntityLogicalName": ""}, "primaryEntityLogicalName"),
            ({"primaryEntityLogicalName": 3}, "primaryEntityLogicalName"),
            ({"primaryEntityLogicalName": "contact", "expand": []}, "non-empty array"),
            ({"primaryEntityLogicalName": "contact", "expand": "x"}, "non-empty array"),
            ({"primaryEntityLogicalName": "contact", "expand": [1]}, "must be an object"),
            (
                {"primaryEntityLogicalName": "contact", "expand": [node("", "account")]},
                "propertyName",
            ),
            (
                {"primaryEntityLogicalName": "contact", "expand": [node("p", " ")]},
                "relatedEntityLogicalName",
            ),
        ],
    )
    def test_invalid_descriptors(self, descriptor: Any, message: str) -> None:
        with pytest.raises(ConfigError, match=message):
            parse(descriptor)

    def test_many_to_many_flag_must_be_boolean(self) -> None:
        item = node("p", "account")
        item["isManyToMany"] = "false"
        with pytest.raises(ConfigError, match="isManyToMany"):
            parse({"primaryEntityLogicalName": "contact", "expand": [item]})

    def test_empty_nested_expansion_fails(self) -> None:
        descriptor = {
            "primaryEntityLogicalName": "contact",
            "expand": [node("p", "account", expand=[])],
        }
        with pytest.raises(ConfigError, match="non-empty array"):
            parse(descriptor)


class TestBuild:
    """Tests for query serialization."""

    def test_id_field_convention(self) -> None:
        assert id_field("contact") == "contactid"

    def test_builds_nested_expand(self) -> None:
        plan = parse({
            "primaryEntityLogicalName": "ardea_booking",
            "expand": [
                node(
                    "ardea_party_Booking",
                    "ardea_party",
                    expand=[node("ardea_party_Guest", "ardea_guest")],
                ),
                node("ardea_seatingplans_Booking", "ardea_seatingplans"),
            ],
        })

        query = build(plan, record_id="a9d556e7-db3e-f011-877a-7c1e5202cd37")

        assert query.entity_type == "ardea_booking"
        assert query.select == "ardea_bookingid"
        assert query.expand == (
            "ardea_party_Booking($select=ardea_partyid;"
            "$expand=ardea_party_Guest($select=ardea_guestid)),"
            "ardea_seatingplans_Booking($select=ardea_seatingplansid)"
        )
        assert query.filter == "ardea_bookingid eq a9d556e7-db3e-f011-877a-7c1e5202cd37"

    def test_query_string(self) -> None:
        plan = parse({
            "primaryEntityLogicalName": "contact",
            "expand": [node("contact_accounts", "account")],
        })

        assert build(plan, record_id="r1").to_query_string() == (
            "?$select=contactid"
            "&$expand=contact_accounts($select=accountid)"
            "&$filter=contactid eq r1"
        )

    def test_no_expansion_or_filter(self) -> None:
        query = build(parse({"primaryEntityLogicalName": "contact"}))
        assert query.expand is None
        assert query.filter is None
        assert query.to_query_string() == "?$select=contactid"
