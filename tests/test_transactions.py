from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from groupledger.core.errors import NotFoundError, ValidationError
from groupledger.models.split import TransactionSplit
from groupledger.models.transaction import Transaction
from groupledger.schemas.transaction import TransactionCreate, TransactionFilters, TransactionUpdate
from groupledger.services import transactions as transaction_service
from groupledger.services.splits import build_equal_splits, equal_share


def _payload(**overrides):
    data = {
        "type": "expense",
        "amount": "300",
        "description": "Groceries",
        "date": "2024-05-10T12:00:00",
        "paidBy": "A",
    }
    data.update(overrides)
    return TransactionCreate.model_validate(data)


def _split_count(db, transaction_id):
    return db.execute(
        select(func.count())
        .select_from(TransactionSplit)
        .where(TransactionSplit.transaction_id == transaction_id)
    ).scalar_one()


class TestSplitMath:
    def test_equal_share_rounds_to_cents(self):
        assert equal_share(Decimal("100"), 3) == Decimal("33.33")
        assert equal_share(Decimal("300"), 3) == Decimal("100.00")

    def test_no_members_no_splits(self):
        assert build_equal_splits(1, Decimal("10"), [], "A") == []


class TestCreateTransaction:
    def test_roommates_scenario(self, db, broadcaster, make_group):
        """300 paid by A over A, B, C: three splits of 100, only A's is paid."""
        group = make_group(members=["A", "B", "C"])

        tx = transaction_service.create_transaction(
            db, broadcaster, _payload(groupId=group.id, isShared=True)
        )

        splits = {s.member_name: s for s in tx.splits}
        assert set(splits) == {"A", "B", "C"}
        assert all(s.amount == Decimal("100.00") for s in splits.values())
        assert splits["A"].is_paid is True
        assert splits["B"].is_paid is False
        assert splits["C"].is_paid is False

    @pytest.mark.parametrize("amount, members", [("100", 3), ("10.01", 7), ("0.05", 2), ("999.99", 6)])
    def test_split_sum_matches_amount(self, db, broadcaster, make_group, amount, members):
        names = [f"M{i}" for i in range(members)]
        group = make_group(members=names)

        tx = transaction_service.create_transaction(
            db, broadcaster, _payload(amount=amount, groupId=group.id, isShared=True, paidBy="M0")
        )

        assert len(tx.splits) == members
        total = sum(s.amount for s in tx.splits)
        assert abs(total - Decimal(amount)) <= Decimal("0.01") * members
        assert sum(1 for s in tx.splits if s.is_paid) == 1

    def test_payer_outside_group_has_no_paid_split(self, db, broadcaster, make_group):
        group = make_group(members=["A", "B"])
        tx = transaction_service.create_transaction(
            db, broadcaster, _payload(groupId=group.id, isShared=True, paidBy="Stranger")
        )
        assert len(tx.splits) == 2
        assert not any(s.is_paid for s in tx.splits)

    def test_unshared_has_no_splits(self, db, broadcaster, make_group):
        group = make_group(members=["A", "B"])
        tx = transaction_service.create_transaction(db, broadcaster, _payload(groupId=group.id))
        assert tx.splits == []

    def test_shared_with_empty_group(self, db, broadcaster, make_group):
        group = make_group(members=[])
        tx = transaction_service.create_transaction(
            db, broadcaster, _payload(groupId=group.id, isShared=True)
        )
        assert tx.is_shared is True
        assert tx.splits == []

    def test_shared_without_group(self, db, broadcaster):
        with pytest.raises(ValidationError):
            transaction_service.create_transaction(db, broadcaster, _payload(isShared=True))
        assert db.execute(select(func.count()).select_from(Transaction)).scalar_one() == 0

    def test_unknown_group(self, db, broadcaster):
        with pytest.raises(NotFoundError):
            transaction_service.create_transaction(db, broadcaster, _payload(groupId=42))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"amount": "0"},
            {"amount": "-5"},
            {"amount": "abc"},
            {"description": "   "},
            {"paidBy": ""},
            {"date": "not-a-date"},
            {"type": "transfer"},
        ],
    )
    def test_invalid_input(self, overrides):
        with pytest.raises(ValueError):
            _payload(**overrides)


class TestCreatedEventOrdering:
    def test_event_before_splits(self, db, broadcaster, make_group):
        """Default ordering: observers hear about the row before any split exists."""
        group = make_group(members=["A", "B", "C"])
        seen = []
        broadcaster.hooks["transaction_created"] = lambda data: seen.append(_split_count(db, data.id))

        tx = transaction_service.create_transaction(
            db,
            broadcaster,
            _payload(groupId=group.id, isShared=True),
            broadcast_before_splits=True,
        )

        assert seen == [0]
        assert _split_count(db, tx.id) == 3
        assert "splits" not in broadcaster.last("transaction_created")["data"]

    def test_event_after_splits(self, db, broadcaster, make_group):
        group = make_group(members=["A", "B", "C"])
        seen = []
        broadcaster.hooks["transaction_created"] = lambda data: seen.append(_split_count(db, data.id))

        transaction_service.create_transaction(
            db,
            broadcaster,
            _payload(groupId=group.id, isShared=True),
            broadcast_before_splits=False,
        )

        assert seen == [3]

    def test_payload_is_the_transaction(self, db, broadcaster):
        tx = transaction_service.create_transaction(db, broadcaster, _payload())
        data = broadcaster.last("transaction_created")["data"]
        assert data["id"] == tx.id
        assert data["paidBy"] == "A"
        assert Decimal(data["amount"]) == Decimal("300")


class TestUpdateAndDelete:
    def test_amount_change_redivides_splits(self, db, broadcaster, make_group):
        group = make_group(members=["A", "B", "C"])
        tx = transaction_service.create_transaction(
            db, broadcaster, _payload(groupId=group.id, isShared=True)
        )

        updated = transaction_service.update_transaction(
            db, broadcaster, tx.id, TransactionUpdate.model_validate({"amount": "90"})
        )

        assert [s.amount for s in updated.splits] == [Decimal("30.00")] * 3
        assert [s.is_paid for s in updated.splits] == [True, False, False]

    def test_plain_field_update_keeps_splits(self, db, broadcaster, make_group):
        group = make_group(members=["A", "B"])
        tx = transaction_service.create_transaction(
            db, broadcaster, _payload(groupId=group.id, isShared=True)
        )

        updated = transaction_service.update_transaction(
            db,
            broadcaster,
            tx.id,
            TransactionUpdate.model_validate({"description": "Dinner", "category": "food"}),
        )

        assert updated.description == "Dinner"
        assert updated.category == "food"
        assert [s.amount for s in updated.splits] == [Decimal("150.00")] * 2
        assert broadcaster.names[-1] == "transaction_updated"

    def test_update_rejects_null_required_field(self, db, broadcaster):
        tx = transaction_service.create_transaction(db, broadcaster, _payload())
        with pytest.raises(ValidationError):
            transaction_service.update_transaction(
                db, broadcaster, tx.id, TransactionUpdate.model_validate({"amount": None})
            )

    def test_update_unknown(self, db, broadcaster):
        with pytest.raises(NotFoundError):
            transaction_service.update_transaction(db, broadcaster, 7, TransactionUpdate())

    def test_delete_cascades_to_splits(self, db, broadcaster, make_group):
        group = make_group(members=["A", "B"])
        tx = transaction_service.create_transaction(
            db, broadcaster, _payload(groupId=group.id, isShared=True)
        )
        tx_id = tx.id

        transaction_service.delete_transaction(db, broadcaster, tx_id)

        assert db.get(Transaction, tx_id) is None
        assert _split_count(db, tx_id) == 0
        assert broadcaster.last("transaction_deleted")["data"] == {"transactionId": tx_id}


class TestListAndStats:
    def _seed(self, db, broadcaster, make_group):
        group = make_group(members=["A", "B"])
        rows = [
            _payload(description="Rent", amount="1000", category="home", paidBy="A",
                     date="2024-05-01T00:00:00", groupId=group.id, isShared=True),
            _payload(description="Salary", type="income", amount="5000", paidBy="A",
                     date="2024-05-15T00:00:00"),
            _payload(description="Taxi", amount="20", category="travel", paidBy="Zed",
                     date="2024-06-02T00:00:00"),
        ]
        for row in rows:
            transaction_service.create_transaction(db, broadcaster, row)
        return group

    def test_newest_first_with_splits(self, db, broadcaster, make_group):
        self._seed(db, broadcaster, make_group)
        result = transaction_service.list_transactions(db, TransactionFilters())
        assert [t.description for t in result] == ["Taxi", "Salary", "Rent"]
        assert len(result[2].splits) == 2

    def test_filters(self, db, broadcaster, make_group):
        group = self._seed(db, broadcaster, make_group)

        def names(**kw):
            return [t.description for t in transaction_service.list_transactions(db, TransactionFilters(**kw))]

        assert names(type="income") == ["Salary"]
        assert names(category="travel") == ["Taxi"]
        assert names(paid_by="Zed") == ["Taxi"]
        assert names(group_id=group.id) == ["Rent"]
        assert names(search="sAl") == ["Salary"]
        assert names(search="zed") == ["Taxi"]
        assert names(start_date=datetime(2024, 5, 10), end_date=datetime(2024, 5, 31)) == ["Salary"]
        assert names(only_group_members=True) == ["Salary", "Rent"]

    def test_only_user_without_profile_is_empty(self, db, broadcaster, make_group):
        self._seed(db, broadcaster, make_group)
        assert transaction_service.list_transactions(db, TransactionFilters(only_user=True)) == []

    def test_monthly_stats(self, db, broadcaster, make_group):
        self._seed(db, broadcaster, make_group)
        stats = transaction_service.monthly_stats(db, 2024, 5)
        assert stats.total_income == "5000.00"
        assert stats.total_expenses == "1000.00"
        assert stats.net_balance == "4000.00"

    def test_monthly_stats_bad_month(self, db):
        with pytest.raises(ValidationError):
            transaction_service.monthly_stats(db, 2024, 13)


class TestTransactionApi:
    def test_create_with_no_observers(self, client, auth_headers, make_group):
        """Nobody is listening; the request still completes normally."""
        group = make_group(members=["A", "B", "C"])
        resp = client.post(
            "/transactions",
            json={
                "type": "expense",
                "amount": 300,
                "description": "Groceries",
                "date": "2024-05-10T12:00:00Z",
                "isShared": True,
                "groupId": group.id,
                "paidBy": "A",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert Decimal(body["amount"]) == Decimal("300")
        assert "splits" not in body

        listed = client.get("/transactions", headers=auth_headers).json()
        assert len(listed[0]["splits"]) == 3
        assert {s["memberName"]: s["isPaid"] for s in listed[0]["splits"]} == {
            "A": True,
            "B": False,
            "C": False,
        }

    def test_validation_error_is_400(self, client, auth_headers):
        resp = client.post(
            "/transactions",
            json={"type": "expense", "amount": -1, "description": "x", "date": "2024-01-01", "paidBy": "A"},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid request"

    def test_query_filters(self, client, auth_headers):
        for desc, kind in (("Lunch", "expense"), ("Bonus", "income")):
            client.post(
                "/transactions",
                json={"type": kind, "amount": "12.50", "description": desc,
                      "date": "2024-03-01T10:00:00", "paidBy": "A"},
                headers=auth_headers,
            )

        resp = client.get("/transactions", params={"type": "income", "paidBy": "A"}, headers=auth_headers)
        assert [t["description"] for t in resp.json()] == ["Bonus"]

    def test_update_delete_roundtrip(self, client, auth_headers):
        tx = client.post(
            "/transactions",
            json={"type": "expense", "amount": "10", "description": "Coffee",
                  "date": "2024-03-01T10:00:00", "paidBy": "A"},
            headers=auth_headers,
        ).json()

        put = client.put(f"/transactions/{tx['id']}", json={"description": "Tea"}, headers=auth_headers)
        assert put.status_code == 200
        assert put.json()["description"] == "Tea"

        assert client.delete(f"/transactions/{tx['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"/transactions/{tx['id']}", headers=auth_headers).status_code == 404

    def test_monthly_stats_endpoint(self, client, auth_headers):
        client.post(
            "/transactions",
            json={"type": "income", "amount": "100", "description": "Gift",
                  "date": "2024-02-10T00:00:00", "paidBy": "A"},
            headers=auth_headers,
        )
        resp = client.get("/stats/monthly", params={"year": 2024, "month": 2}, headers=auth_headers)
        assert resp.json() == {"totalIncome": "100.00", "totalExpenses": "0.00", "netBalance": "100.00"}

    def test_monthly_stats_defaults_to_current_month(self, client, auth_headers, monkeypatch):
        monkeypatch.setattr(
            "groupledger.api.routes.stats.utc_now_naive", lambda: datetime(2024, 2, 20, 9, 0)
        )
        client.post(
            "/transactions",
            json={"type": "expense", "amount": "40", "description": "Books",
                  "date": "2024-02-03T00:00:00", "paidBy": "A"},
            headers=auth_headers,
        )
        resp = client.get("/stats/monthly", headers=auth_headers)
        assert resp.json() == {"totalIncome": "0.00", "totalExpenses": "40.00", "netBalance": "-40.00"}
