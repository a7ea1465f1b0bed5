from datetime import date, datetime
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from safetatt.config import Config
from safetatt.models import Client, MarketingCampaign, Session
from safetatt.services import marketing

TODAY = date(2025, 5, 10)


class FakeGateway:
    """Records sends; numbers listed in `failing` are refused."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []

    def send_text(self, instance_name, token, number, text):
        self.sent.append((instance_name, number, text))
        if number in self.failing:
            return {"success": False, "error": "refused"}
        return {"success": True, "message_id": f"msg-{len(self.sent)}"}


def _client(id, name, phone="11900000000", birth_date=None):
    return SimpleNamespace(id=id, full_name=name, phone=phone, birth_date=birth_date)


def _visit(client_id, day, status="completed", professional_id=1):
    return SimpleNamespace(
        client_id=client_id,
        performed_date=datetime.combine(day, datetime.min.time()),
        created_at=None,
        status=status,
        professional_id=professional_id,
    )


@pytest.mark.marketing
class TestSegmentation:
    def test_clients_without_phone_are_never_selected(self):
        clients = [_client(1, "Ana"), _client(2, "Sem Fone", phone=None)]

        selected = marketing.segment_audience(clients, [], "all", today=TODAY)

        assert [c.id for c in selected] == [1]

    def test_birthday_defaults_to_current_month(self):
        clients = [
            _client(1, "Maio", birth_date=date(1990, 5, 30)),
            _client(2, "Junho", birth_date=date(1990, 6, 1)),
            _client(3, "Sem Data"),
        ]

        selected = marketing.segment_audience(clients, [], "birthday", today=TODAY)

        assert [c.id for c in selected] == [1]

    def test_birthday_month_filter(self):
        clients = [_client(1, "Junho", birth_date=date(1990, 6, 1))]

        selected = marketing.segment_audience(
            clients, [], "birthday", {"month": "6"}, today=TODAY
        )

        assert len(selected) == 1

    def test_winback_needs_more_than_ninety_days_away(self):
        clients = [_client(1, "Sumida"), _client(2, "Recente"), _client(3, "Nunca Veio")]
        sessions = [
            _visit(1, date(2025, 1, 1)),
            _visit(2, date(2025, 1, 1)),
            _visit(2, date(2025, 4, 1)),
        ]

        selected = marketing.segment_audience(clients, sessions, "winback", today=TODAY)

        assert [c.id for c in selected] == [1]

    def test_return_selects_clients_with_open_sessions(self):
        clients = [_client(1, "Em Andamento"), _client(2, "Finalizado")]
        sessions = [_visit(1, TODAY, status="in_progress"), _visit(2, TODAY)]

        selected = marketing.segment_audience(clients, sessions, "return", today=TODAY)

        assert [c.id for c in selected] == [1]

    def test_professional_and_search_filters(self):
        clients = [_client(1, "Ana Souza"), _client(2, "Ana Lima"), _client(3, "Bia")]
        sessions = [
            _visit(1, TODAY, professional_id=7),
            _visit(2, TODAY, professional_id=8),
            _visit(3, TODAY, professional_id=7),
        ]

        selected = marketing.segment_audience(
            clients, sessions, "all", {"professional_id": "7", "search": "ana"}, today=TODAY
        )

        assert [c.id for c in selected] == [1]


@pytest.mark.marketing
class TestMassSend:
    def _studio(self, **overrides):
        values = {"whatsapp_instance_name": "estudio", "whatsapp_token": "tok"}
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_pauses_between_sends_but_not_after_last(self):
        sleeps = []
        gateway = FakeGateway()
        recipients = [{"name": "Ana Souza", "phone": "1"}, {"name": "Bia", "phone": "2"}, {"name": "Caio", "phone": "3"}]

        result = marketing.send_mass_message(
            self._studio(), recipients, "Oi {{name}}!", gateway, sleep=sleeps.append
        )

        assert result == {"success": True, "sent_count": 3, "failed_count": 0}
        assert len(sleeps) == 2
        assert all(15 <= pause <= 45 for pause in sleeps)
        assert gateway.sent[0] == ("estudio", "1", "Oi Ana!")

    def test_failures_are_counted_and_loop_continues(self):
        gateway = FakeGateway(failing={"2"})
        recipients = [{"name": "Ana", "phone": "1"}, {"name": "Bia", "phone": "2"}, {"name": "Caio", "phone": "3"}]

        result = marketing.send_mass_message(
            self._studio(), recipients, "Oi", gateway, sleep=lambda _: None
        )

        assert result["sent_count"] == 2
        assert result["failed_count"] == 1
        assert len(gateway.sent) == 3

    def test_progress_callback(self):
        progress = []
        recipients = [{"name": "Ana", "phone": "1"}, {"name": "Bia", "phone": "2"}]

        marketing.send_mass_message(
            self._studio(),
            recipients,
            "Oi",
            FakeGateway(),
            sleep=lambda _: None,
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert progress == [(1, 2), (2, 2)]

    def test_default_pacing(self):
        assert (Config.CAMPAIGN_MIN_DELAY_SECONDS, Config.CAMPAIGN_MAX_DELAY_SECONDS) == (15.0, 45.0)

    def test_requires_connected_instance(self):
        gateway = FakeGateway()

        result = marketing.send_mass_message(
            self._studio(whatsapp_token=None), [{"name": "Ana", "phone": "1"}], "Oi", gateway
        )

        assert result["success"] is False
        assert gateway.sent == []


@pytest.mark.marketing
class TestCampaigns:
    def test_create_validates_type(self, db, studio):
        result = marketing.create_campaign(
            {"studio_id": studio.id, "name": "Black Friday", "type": "promo"}
        )

        assert result["success"] is False

    def test_run_campaign_records_outcome(self, db, studio):
        studio.whatsapp_instance_name = "estudio_tinta_fina"
        studio.whatsapp_token = "tok"
        db.session.commit()
        created = marketing.create_campaign(
            {
                "studio_id": studio.id,
                "name": "Aniversariantes",
                "type": "birthday",
                "message_template": "Parabéns {{name}}!",
            }
        )

        result = marketing.run_campaign(
            created["data"]["id"],
            [{"name": "Ana", "phone": "1"}, {"name": "Bia", "phone": "2"}],
            FakeGateway(failing={"2"}),
            sleep=lambda _: None,
        )

        campaign = db.session.get(MarketingCampaign, created["data"]["id"])
        assert result["success"] is True
        assert campaign.status == "sent"
        assert campaign.sent_count == 1
        assert campaign.failed_count == 1

    def test_metrics(self, db, studio):
        db.session.add_all(
            [
                Client(studio_id=studio.id, full_name="Hoje", phone="1", birth_date=date(1995, 5, 10)),
                Client(studio_id=studio.id, full_name="Sumido", phone="2"),
            ]
        )
        db.session.commit()
        sumido = db.session.query(Client).filter_by(full_name="Sumido").one()
        db.session.add(
            Session(
                studio_id=studio.id,
                client_id=sumido.id,
                status="completed",
                performed_date=datetime(2024, 12, 1),
            )
        )
        db.session.commit()

        metrics = marketing.get_marketing_metrics(studio.id, today=TODAY)

        assert metrics == {"birthday_count": 1, "winback_count": 1, "return_count": 0}


@pytest.mark.marketing
class TestMarketingApi:
    def test_audience_preview(self, client, studio, sample_client, auth_headers):
        response = client.get(
            f"/api/marketing/studios/{studio.id}/audience?audience=all", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.get_json()["count"] == 1

    def test_unknown_audience(self, client, studio, auth_headers):
        response = client.get(
            f"/api/marketing/studios/{studio.id}/audience?audience=vip", headers=auth_headers
        )

        assert response.status_code == 400

    @pytest.mark.parametrize("month", ["abc", "13", "0"])
    def test_bad_birthday_month(self, client, studio, auth_headers, month):
        response = client.get(
            f"/api/marketing/studios/{studio.id}/audience?audience=birthday&month={month}",
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_send_rejects_bad_month(self, client, db, studio, sample_client, auth_headers):
        studio.whatsapp_instance_name = "estudio_tinta_fina"
        studio.whatsapp_token = "tok"
        db.session.commit()
        campaign = marketing.create_campaign(
            {"studio_id": studio.id, "name": "Aniversário", "type": "birthday"}
        )

        with patch("safetatt.api.marketing.marketing.schedule_campaign") as mock_schedule:
            response = client.post(
                f"/api/marketing/campaigns/{campaign['data']['id']}/send",
                json={"audience": "birthday", "month": "maio"},
                headers=auth_headers,
            )

        assert response.status_code == 400
        mock_schedule.assert_not_called()

    def test_send_is_queued(self, client, db, studio, sample_client, auth_headers):
        studio.whatsapp_instance_name = "estudio_tinta_fina"
        studio.whatsapp_token = "tok"
        db.session.commit()
        created = client.post(
            f"/api/marketing/studios/{studio.id}/campaigns",
            json={"name": "Geral", "type": "custom", "message_template": "Oi {{name}}"},
            headers=auth_headers,
        )
        campaign_id = created.get_json()["data"]["id"]

        with patch(
            "safetatt.api.marketing.marketing.schedule_campaign",
            return_value=f"campaign-{campaign_id}",
        ) as mock_schedule:
            response = client.post(
                f"/api/marketing/campaigns/{campaign_id}/send",
                json={"audience": "all"},
                headers=auth_headers,
            )

        assert created.status_code == 201
        assert response.status_code == 202
        assert response.get_json()["audience_count"] == 1
        recipients = mock_schedule.call_args[0][2]
        assert recipients == [{"name": "Maria Silva", "phone": "(11) 99999-0000"}]
        db.session.expire_all()
        assert db.session.get(MarketingCampaign, campaign_id).status == "scheduled"

    def test_send_without_whatsapp(self, client, studio, auth_headers):
        created = client.post(
            f"/api/marketing/studios/{studio.id}/campaigns",
            json={"name": "Geral", "type": "custom"},
            headers=auth_headers,
        )

        response = client.post(
            f"/api/marketing/campaigns/{created.get_json()['data']['id']}/send",
            json={},
            headers=auth_headers,
        )

        assert response.status_code == 400
