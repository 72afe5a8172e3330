"""Tests for escrow API endpoints."""

from uuid import uuid4

from fastapi.testclient import TestClient


def open_escrow(client: TestClient, total: str = "1000") -> str:
    order_id = str(uuid4())
    response = client.post("/escrow/orders", json={"order_id": order_id, "total_amount": total})
    assert response.status_code == 201, response.text
    return order_id


class TestBreakdown:
    """Tests for POST /escrow/breakdown."""

    def test_breakdown(self, auth_client: TestClient) -> None:
        response = auth_client.post("/escrow/breakdown", json={"total_amount": "1000"})

        assert response.status_code == 200
        data = response.json()
        assert data["total_amount"] == "1000.00"
        assert data["deposit_amount"] == "250.00"
        assert data["fitting_amount"] == "500.00"
        assert data["final_amount"] == "250.00"
        assert data["currency"] == "GHS"

    def test_final_absorbs_rounding(self, auth_client: TestClient) -> None:
        response = auth_client.post("/escrow/breakdown", json={"total_amount": "99.99"})

        data = response.json()
        assert data["deposit_amount"] == "25.00"
        assert data["fitting_amount"] == "50.00"
        assert data["final_amount"] == "24.99"

    def test_non_positive_total(self, auth_client: TestClient) -> None:
        response = auth_client.post("/escrow/breakdown", json={"total_amount": "0"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_AMOUNT"


class TestStageAmount:
    """Tests for GET /escrow/stage-amount."""

    def test_fitting(self, auth_client: TestClient) -> None:
        response = auth_client.get(
            "/escrow/stage-amount", params={"total_amount": "123.45", "stage": "FITTING"}
        )

        assert response.status_code == 200
        assert response.json()["amount"] == "61.73"
        assert response.json()["stage"] == "FITTING"

    def test_released_owes_nothing(self, auth_client: TestClient) -> None:
        response = auth_client.get(
            "/escrow/stage-amount", params={"total_amount": "1000", "stage": "RELEASED"}
        )

        assert response.json()["amount"] == "0.00"

    def test_unknown_stage(self, auth_client: TestClient) -> None:
        response = auth_client.get(
            "/escrow/stage-amount", params={"total_amount": "1000", "stage": "LAYAWAY"}
        )

        assert response.status_code == 400


class TestEscrowLedger:
    """Tests for the escrow ledger endpoints."""

    def test_open(self, auth_client: TestClient) -> None:
        order_id = open_escrow(auth_client)

        response = auth_client.get(f"/escrow/orders/{order_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["current_stage"] == "DEPOSIT"
        assert data["escrow_balance"] == "1000.00"
        assert data["breakdown"]["deposit_amount"] == "250.00"
        assert data["is_valid"] is True

    def test_open_again_same_total(self, auth_client: TestClient) -> None:
        order_id = open_escrow(auth_client)

        response = auth_client.post(
            "/escrow/orders", json={"order_id": order_id, "total_amount": "1000.00"}
        )

        assert response.status_code == 201
        assert response.json()["current_stage"] == "DEPOSIT"

    def test_open_again_different_total(self, auth_client: TestClient) -> None:
        order_id = open_escrow(auth_client)

        response = auth_client.post(
            "/escrow/orders", json={"order_id": order_id, "total_amount": "900"}
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

    def test_unknown_order(self, auth_client: TestClient) -> None:
        response = auth_client.get(f"/escrow/orders/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["error_code"] == "ESCROW_NOT_FOUND"

    def test_deposit(self, auth_client: TestClient) -> None:
        order_id = open_escrow(auth_client)

        response = auth_client.post(f"/escrow/orders/{order_id}/deposit", json={"amount": "250"})

        assert response.status_code == 200
        assert response.json()["current_stage"] == "FITTING"
        assert response.json()["deposit_paid"] == "250.00"

    def test_wrong_deposit(self, auth_client: TestClient) -> None:
        order_id = open_escrow(auth_client)

        response = auth_client.post(f"/escrow/orders/{order_id}/deposit", json={"amount": "100"})

        assert response.status_code == 400

    def test_second_deposit(self, auth_client: TestClient) -> None:
        order_id = open_escrow(auth_client)
        auth_client.post(f"/escrow/orders/{order_id}/deposit", json={"amount": "250"})

        response = auth_client.post(f"/escrow/orders/{order_id}/deposit", json={"amount": "250"})

        assert response.status_code == 409


class TestReleaseMilestonePayment:
    """Tests for POST /escrow/release-milestone-payment."""

    def test_release(
        self, auth_client: TestClient, client: TestClient, service_headers: dict[str, str]
    ) -> None:
        order_id = open_escrow(auth_client)
        auth_client.post(f"/escrow/orders/{order_id}/deposit", json={"amount": "250"})

        response = client.post(
            "/escrow/release-milestone-payment",
            json={"order_id": order_id, "milestone_id": "ms-1", "amount": "500.00"},
            headers=service_headers,
        )

        assert response.status_code == 200
        assert response.json()["released"] is True
        assert auth_client.get(f"/escrow/orders/{order_id}").json()["current_stage"] == "FINAL"

    def test_release_refused(self, client: TestClient, service_headers: dict[str, str]) -> None:
        response = client.post(
            "/escrow/release-milestone-payment",
            json={"order_id": str(uuid4()), "milestone_id": "ms-1", "amount": "500.00"},
            headers=service_headers,
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "PAYMENT_NOT_RELEASED"

    def test_requires_service_token(self, auth_client: TestClient) -> None:
        """The API key is not accepted in place of the service token."""
        response = auth_client.post(
            "/escrow/release-milestone-payment",
            json={"order_id": str(uuid4()), "milestone_id": "ms-1", "amount": "500.00"},
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"
