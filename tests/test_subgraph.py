from unittest.mock import MagicMock

import pytest
import requests

from ensdash.errors import SubgraphError
from ensdash.schema import NameFilter
from ensdash.subgraph import PAGE_SIZE, EnsSubgraphIndex, build_query, build_where, parse_domain
from tests.conftest import ALICE

URL = "https://subgraph.example/ens"


def response(body=None, status=200, text=""):
    r = MagicMock()
    r.status_code = status
    r.text = text
    if isinstance(body, Exception):
        r.json.side_effect = body
    else:
        r.json.return_value = body
    return r


def row(name, id_=None, expiry=None, wrapped_expiry=None):
    return {
        "id": id_ or name,
        "name": name,
        "labelName": name.split(".")[0],
        "createdAt": "1700000000",
        "registration": {"expiryDate": expiry} if expiry else None,
        "wrappedDomain": {"expiryDate": wrapped_expiry} if wrapped_expiry else None,
    }


def index_with(*responses):
    session = MagicMock()
    session.post.side_effect = list(responses)
    return EnsSubgraphIndex(url=URL, session=session), session


class TestQuery:
    def test_default_filter_covers_control_relations_only(self):
        where = build_where(NameFilter())
        assert "owner: $address" in where
        assert "registration_: { registrant: $address }" in where
        assert "wrappedDomain_: { owner: $address }" in where
        assert "resolvedAddress" not in where
        assert where.startswith("{ or: [")

    def test_resolved_address_can_be_opted_in(self):
        assert "resolvedAddress: $address" in build_where(NameFilter(resolved_address=True))

    def test_empty_filter_is_rejected(self):
        with pytest.raises(SubgraphError):
            build_where(NameFilter(owner=False, registrant=False, wrapped_owner=False))

    def test_query_orders_newest_first(self):
        query = build_query(NameFilter())
        assert "orderBy: createdAt, orderDirection: desc" in query
        assert "$skip: Int!" in query


class TestParse:
    def test_expiry_prefers_registration(self):
        domain = parse_domain(row("a.eth", expiry="100", wrapped_expiry="200"))
        assert domain.expiry_date == "100"
        assert domain.label_name == "a"

    def test_wrapped_name_gets_token_id(self):
        domain = parse_domain(row("w.eth", id_="0x" + "00" * 31 + "2a", wrapped_expiry="200"))
        assert domain.expiry_date == "200"
        assert domain.token_id == "42"

    def test_unwrapped_name_has_no_token_id(self):
        assert parse_domain(row("a.eth", expiry="1")).token_id is None

    def test_row_without_name_is_skipped(self):
        assert parse_domain({"id": "0x01", "name": None}) is None


class TestEnsSubgraphIndex:
    def test_sends_lowercased_address(self):
        index, session = index_with(response({"data": {"domains": [row("a.eth")]}}))
        names = index.names_owned_by("0xABCDEFabcdefABCDEFabcdefABCDEFabcdefABCD", NameFilter(), 1)

        assert [d.name for d in names] == ["a.eth"]
        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        assert url == URL
        assert payload["variables"] == {
            "address": "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd",
            "first": PAGE_SIZE,
            "skip": 0,
        }

    def test_follows_pages_until_short_page(self):
        full = [row(f"n{i}.eth", id_=f"0x{i:064x}") for i in range(PAGE_SIZE)]
        index, session = index_with(
            response({"data": {"domains": full}}),
            response({"data": {"domains": [row("last.eth")]}}),
        )
        names = index.names_owned_by(ALICE, NameFilter(), 1)

        assert len(names) == PAGE_SIZE + 1
        assert names[-1].name == "last.eth"
        skips = [c.kwargs["json"]["variables"]["skip"] for c in session.post.call_args_list]
        assert skips == [0, PAGE_SIZE]

    def test_empty_result(self):
        index, _ = index_with(response({"data": {"domains": []}}))
        assert index.names_owned_by(ALICE, NameFilter(), 1) == []

    @pytest.mark.parametrize(
        "reply,match",
        [
            (response(status=502, text="bad gateway"), "502"),
            (response(ValueError("no json")), "non-JSON"),
            (response({"errors": [{"message": "indexing_error"}]}), "indexing_error"),
            (response({"data": {}}), "no domains"),
            (response({"data": {"domains": ["junk"]}}), "malformed"),
        ],
    )
    def test_bad_responses(self, reply, match):
        index, _ = index_with(reply)
        with pytest.raises(SubgraphError, match=match):
            index.names_owned_by(ALICE, NameFilter(), 1)

    def test_unreachable(self):
        index, _ = index_with(requests.ConnectionError("refused"))
        with pytest.raises(SubgraphError, match="unreachable"):
            index.names_owned_by(ALICE, NameFilter(), 1)

    def test_endpoint_from_chain_config(self, sepolia):
        session = MagicMock()
        session.post.return_value = response({"data": {"domains": []}})
        EnsSubgraphIndex(session=session).names_owned_by(ALICE, NameFilter(), sepolia.chain_id)
        assert session.post.call_args.args[0] == sepolia.subgraph_url
