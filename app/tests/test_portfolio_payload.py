import json

import pytest

from agents.advisor_state import AllocationItem
from utils.portfolio_payload import PORTFOLIO_MARKER, extract_portfolio_payload, find_array_span


def test_single_item_payload():
    reply = 'Sounds good! [UPDATE_PORTFOLIO]\n[{"category":"Bonds","percentage":150}]'

    scan = extract_portfolio_payload(reply)

    assert scan.found
    assert scan.items == [AllocationItem(category="Bonds", percentage=150)]
    assert scan.strip_from(reply) == "Sounds good!"


def test_no_marker():
    scan = extract_portfolio_payload('Here is a list: [{"category": "Bonds", "percentage": 50}]')

    assert not scan.found
    assert scan.items is None
    assert scan.span is None


def test_payload_survives_surrounding_prose():
    items = [
        AllocationItem(category="US Large Cap Stocks", percentage=45, description="S&P 500 index funds"),
        AllocationItem(category="International Stocks", percentage=25, description="Emerging markets growth"),
        AllocationItem(category="Bonds", percentage=30),
    ]
    payload = json.dumps([item.model_dump() for item in items], indent=2)
    reply = f"Perfect, here's your plan:\n\n{PORTFOLIO_MARKER}\n{payload}\n\nHow does this look?"

    scan = extract_portfolio_payload(reply)

    assert scan.found
    assert scan.items == items
    assert scan.strip_from(reply) == "Perfect, here's your plan:\n\nHow does this look?"


def test_nested_brackets_are_balanced():
    reply = (
        'Done. [UPDATE_PORTFOLIO] [{"category": "Bonds", "percentage": 60, "tags": ["safe", ["gov"]]},'
        ' {"category": "Stocks", "percentage": 40}] Enjoy [really].'
    )

    scan = extract_portfolio_payload(reply)

    assert scan.found
    assert [item.category for item in scan.items] == ["Bonds", "Stocks"]
    assert scan.strip_from(reply) == "Done.\n\nEnjoy [really]."


@pytest.mark.parametrize("reply", [
    '[UPDATE_PORTFOLIO] [{"category": "Bonds", "percentage": 60,}]',
    '[UPDATE_PORTFOLIO] [{"category": "Bonds"}]',
    '[UPDATE_PORTFOLIO] [{"category": "Bonds", "percentage": "lots"}]',
    '[UPDATE_PORTFOLIO] [{"category": "Bonds", "percentage": -5}]',
    '[UPDATE_PORTFOLIO] [{"category": "Bonds", "percentage": true}]',
    '[UPDATE_PORTFOLIO] ["Bonds", 60]',
    '[UPDATE_PORTFOLIO] []',
    '[UPDATE_PORTFOLIO] [{"category": "Bonds", "percentage": 1e400}]',
    '[UPDATE_PORTFOLIO] [{"category": "Bonds", "percentage": Infinity}]',
])
def test_malformed_payload_degrades_to_not_found(reply):
    scan = extract_portfolio_payload(reply)

    assert not scan.found
    assert scan.items is None
    assert scan.strip_from(reply) == ""


def test_unbalanced_array_is_hidden_from_reply():
    reply = 'Let me think. [UPDATE_PORTFOLIO] [{"category": "Bonds", "percentage": 60}'

    scan = extract_portfolio_payload(reply)

    assert not scan.found
    assert scan.strip_from(reply) == "Let me think."


def test_marker_without_array():
    scan = extract_portfolio_payload("All set [UPDATE_PORTFOLIO] nothing more")

    assert not scan.found
    assert scan.span is not None


def test_find_array_span():
    text = "x [a, [b], c] [d]"

    assert find_array_span(text, 0) == (2, 13)
    assert find_array_span(text, 3) == (6, 9)
    assert find_array_span("no brackets", 0) is None
    assert find_array_span("[[open", 0) is None
