"""
Integration tests for the Mercado Pago webhook endpoint
"""

from sqlmodel import select

from resto_billing.models import (
    Account, LeadStatus, LedgerEntry, ProvisioningState, ScheduleEntry,
    SubscriptionStatus, Tenant
)
from resto_billing.services import provisioning
from resto_billing.services.references import lead_reference

from helpers import approved_payment, temporary_password_from

WEBHOOK_URL = "/api/v1/webhooks/mercadopago"


class TestWebhookEnvelope:
    """Test notification parsing and acknowledgement"""

    def test_missing_resource_id_is_acknowledged(self, api_client, session, make_owner, provider):
        make_owner()

        response = api_client.post(WEBHOOK_URL, json={"type": "payment"})

        assert response.status_code == 200
        assert response.json() == {"message": "Invalid payload"}
        assert provider.calls == []
        assert session.exec(select(LedgerEntry)).all() == []

    def test_invalid_json_is_acknowledged(self, api_client, provider):
        response = api_client.post(
            WEBHOOK_URL, content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Invalid payload"}
        assert provider.calls == []

    def test_non_object_body_is_acknowledged(self, api_client, provider):
        response = api_client.post(WEBHOOK_URL, json=["payment", "1001"])

        assert response.status_code == 200
        assert response.json() == {"message": "Invalid payload"}

    def test_unsupported_type_is_ignored(self, api_client, make_owner, provider):
        make_owner()

        response = api_client.post(WEBHOOK_URL, json={"type": "plan", "data": {"id": "1"}})

        assert response.status_code == 200
        assert response.json() == {"message": "Webhook processed successfully"}
        assert provider.calls == []

    def test_numeric_id_is_accepted(self, api_client, make_owner, provider):
        make_owner(token="TOKEN-A")

        response = api_client.post(WEBHOOK_URL, json={"type": "payment", "data": {"id": 1001}})

        assert response.status_code == 200
        assert provider.calls == [("payment", "TOKEN-A", "1001")]

    def test_ipn_query_parameters(self, api_client, session, make_owner, make_tenant, provider):
        owner = make_owner(token="TOKEN-A")
        tenant = make_tenant(owner)
        provider.add_payment("TOKEN-A", approved_payment(1001, str(tenant.id)))

        response = api_client.post(f"{WEBHOOK_URL}?topic=payment&id=1001")

        assert response.status_code == 200
        assert len(session.exec(select(LedgerEntry)).all()) == 1


class TestWebhookScenarios:
    """Test end-to-end billing flows through the endpoint"""

    def test_new_subscriber(self, api_client, session, make_owner, make_plan, make_lead, provider):
        owner = make_owner(token="TOKEN-A")
        lead = make_lead(owner, make_plan(owner, trial_days=7), email="a@x.com", business_name="Acme Burgers")
        provider.add_payment("TOKEN-A", approved_payment(2001, lead_reference(lead.id)))

        response = api_client.post(WEBHOOK_URL, json={"type": "payment", "data": {"id": "2001"}})

        assert response.status_code == 200
        assert response.json() == {"message": "Webhook processed successfully"}

        tenant = session.exec(select(Tenant)).one()
        assert tenant.slug == "acme-burgers"
        assert tenant.subscription_status == SubscriptionStatus.ACTIVE
        assert len(session.exec(select(ScheduleEntry)).all()) == 7

        session.refresh(lead)
        assert lead.status == LeadStatus.CONVERTED
        assert lead.provisioning_state == ProvisioningState.DONE
        account = session.exec(select(Account)).one()
        assert account.email == "a@x.com"
        assert temporary_password_from(lead.notes)

    def test_lead_payment_redelivery_creates_nothing_new(
        self, api_client, session, make_owner, make_lead, provider
    ):
        owner = make_owner(token="TOKEN-A")
        lead = make_lead(owner)
        provider.add_payment("TOKEN-A", approved_payment(2001, lead_reference(lead.id)))
        body = {"type": "payment", "data": {"id": "2001"}}

        api_client.post(WEBHOOK_URL, json=body)
        response = api_client.post(WEBHOOK_URL, json=body)

        assert response.status_code == 200
        assert len(session.exec(select(Tenant)).all()) == 1
        assert len(session.exec(select(Account)).all()) == 1

    def test_duplicate_delivery_records_one_payment(
        self, api_client, session, make_owner, make_tenant, provider
    ):
        owner = make_owner(token="TOKEN-A")
        tenant = make_tenant(owner)
        provider.add_payment("TOKEN-A", approved_payment(1001, str(tenant.id)))
        body = {"type": "payment", "data": {"id": "1001"}}

        first = api_client.post(WEBHOOK_URL, json=body)
        second = api_client.post(WEBHOOK_URL, json=body)

        assert first.status_code == second.status_code == 200
        assert len(session.exec(select(LedgerEntry)).all()) == 1

    def test_subscription_paused(self, api_client, session, make_owner, make_tenant, provider):
        owner = make_owner(token="TOKEN-A")
        tenant = make_tenant(owner, mp_subscription_id="sub-1")
        provider.add_subscription("TOKEN-A", {"id": "sub-1", "status": "paused"})

        response = api_client.post(WEBHOOK_URL, json={"type": "subscription_preapproval", "data": {"id": "sub-1"}})

        assert response.status_code == 200
        session.refresh(tenant)
        assert tenant.subscription_status == SubscriptionStatus.SUSPENDED
        assert tenant.is_active is False

    def test_owner_hint_skips_probing(self, api_client, session, make_owner, make_tenant, provider):
        make_owner(token="TOKEN-A")
        make_owner(token="TOKEN-B")
        owner_c = make_owner(token="TOKEN-C")
        tenant = make_tenant(owner_c)
        provider.add_payment("TOKEN-C", approved_payment(1001, str(tenant.id)))

        response = api_client.post(
            f"{WEBHOOK_URL}?owner_id={owner_c.id}", json={"type": "payment", "data": {"id": "1001"}}
        )

        assert response.status_code == 200
        assert provider.calls == [("payment", "TOKEN-C", "1001")]
        assert len(session.exec(select(LedgerEntry)).all()) == 1

    def test_transient_provider_failure_requests_retry(
        self, api_client, session, make_owner, make_tenant, provider
    ):
        owner = make_owner(token="TOKEN-A")
        make_tenant(owner, mp_subscription_id="sub-1")
        provider.fail("preapproval", "TOKEN-A", "sub-1", 503)

        response = api_client.post(WEBHOOK_URL, json={"type": "subscription_preapproval", "data": {"id": "sub-1"}})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Webhook processing failed"
        assert "sub-1" in body["details"]


def test_health(api_client):
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "resto-billing-api"}


class TestProvisioningRetry:
    """Test that a paid lead without a restaurant is redelivered"""

    def test_slug_conflict_answers_500_then_redelivery_provisions(
        self, api_client, session, make_owner, make_tenant, make_lead, provider, monkeypatch
    ):
        owner = make_owner(token="TOKEN-A")
        make_tenant(owner, slug="acme")
        lead = make_lead(owner, business_name="Acme")
        provider.add_payment("TOKEN-A", approved_payment(2001, lead_reference(lead.id)))
        monkeypatch.setattr(provisioning, "allocate_slug", lambda session, name: "acme")
        body = {"type": "payment", "data": {"id": "2001"}}

        response = api_client.post(WEBHOOK_URL, json=body)

        assert response.status_code == 500
        session.refresh(lead)
        assert lead.status == LeadStatus.CONVERTED
        assert lead.provisioning_state == ProvisioningState.PENDING

        monkeypatch.undo()
        response = api_client.post(WEBHOOK_URL, json=body)

        assert response.status_code == 200
        session.refresh(lead)
        assert lead.provisioning_state == ProvisioningState.DONE
        tenant = session.get(Tenant, lead.tenant_id)
        assert tenant.slug == "acme-1"
