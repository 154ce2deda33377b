import unittest
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from clinic_agent.api import create_app
from clinic_agent.config import Config
from clinic_agent.core.conversation import AnalysisResponse
from clinic_agent.tool_definitions import context
from clinic_agent.tools.toolkit import Toolkit


class TestAnalysisEndpoint(unittest.TestCase):

    def setUp(self):
        self.agent = MagicMock()
        self.agent.analyze = AsyncMock(return_value=AnalysisResponse(message="이번 달 지각은 3건입니다."))
        self.client = TestClient(create_app(self.agent))

    def post(self, body):
        return self.client.post("/api/ai-analysis", json=body)

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_success(self):
        response = self.post({
            "tenant_id": "clinic-a",
            "message": "이번 달 지각",
            "conversationHistory": [{"role": "user", "content": "안녕"}],
            "dateRange": {"startDate": "2026-10-01", "endDate": "2026-10-19"},
            "attachedFiles": None,
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "이번 달 지각은 3건입니다."})

        request = self.agent.analyze.await_args.args[0]
        self.assertEqual(request.tenant_id, "clinic-a")
        self.assertEqual(request.date_range.to_dict(), {"startDate": "2026-10-01", "endDate": "2026-10-19"})
        self.assertEqual(request.conversation_history[0].content, "안녕")

    def test_blank_message(self):
        response = self.post({"tenant_id": "clinic-a", "message": "  "})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "메시지를 입력해주세요."})
        self.agent.analyze.assert_not_awaited()

    def test_blank_tenant(self):
        response = self.post({"tenant_id": "", "message": "직원 수"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "클리닉 ID가 필요합니다."})

    def test_schema_violation(self):
        self.assertEqual(self.post({"tenant_id": "clinic-a"}).status_code, 422)

    def test_analysis_error(self):
        self.agent.analyze.return_value = AnalysisResponse(message="", error="quota exceeded")
        response = self.post({"tenant_id": "clinic-a", "message": "직원 수"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"message": "", "error": "quota exceeded"})

    def test_unexpected_failure(self):
        self.agent.analyze.side_effect = RuntimeError("boom")
        response = self.post({"tenant_id": "clinic-a", "message": "직원 수"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["message"], "")


class TestLifespan(unittest.TestCase):

    def tearDown(self):
        context.set_toolkit(None)

    def test_shutdown_closes_shared_toolkit(self):
        store = MagicMock()
        context.set_toolkit(Toolkit(Config(), store=store))

        with TestClient(create_app(MagicMock())) as client:
            self.assertEqual(client.get("/health").status_code, 200)
            store.close.assert_not_called()

        store.close.assert_called_once()
        self.assertIsNone(context._toolkit)


if __name__ == "__main__":
    unittest.main()
