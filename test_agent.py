import asyncio
import json
import unittest
from datetime import date
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from google.genai import types

from clinic_agent.config import Config
from clinic_agent.core.agent import ANALYSIS_ERROR, FALLBACK_ANSWER, Agent, build_conversation
from clinic_agent.core.conversation import (
    AnalysisRequest,
    Conversation,
    ConversationTurn,
    TextPart,
    ToolCall,
    ToolCallPart,
    ToolResult,
    ToolResultPart,
)
from clinic_agent.core.date_parser import parse_date_range
from clinic_agent.core.mcp_registry import build_gemini_tools_from_mcp, sanitize_schema
from clinic_agent.core.model_client import (
    GeminiModelClient,
    ModelTransportError,
    turn_from_gemini,
    turn_to_gemini,
)
from clinic_agent.core.prompt_loader import build_system_prompt
from clinic_agent.tool_definitions import mcp
from fakes import ScriptedModel, call_turn, text_turn

TENANT = "clinic-a"


class RecordingDispatcher:
    """Returns a canned JSON payload per tool and records every call."""

    def __init__(self):
        self.calls = []

    async def dispatch(self, tenant_id, tool_name, args):
        self.calls.append((tenant_id, tool_name, dict(args)))
        return json.dumps({"tool": tool_name, "n": len(self.calls)})


def make_agent(model, max_tool_rounds=10, dispatcher=None):
    return Agent(
        Config(max_tool_rounds=max_tool_rounds),
        model_client=model,
        dispatcher=dispatcher or RecordingDispatcher(),
        system_prompt="test prompt",
    )


# --- Date phrases ---

class TestDateParser(unittest.TestCase):

    def test_two_digit_year_range(self):
        self.assertEqual(
            parse_date_range("26년 1월 1일부터 26년 1월 31일 매출 알려줘"),
            {"startDate": "2026-01-01", "endDate": "2026-01-31"},
        )

    def test_four_digit_year_range(self):
        self.assertEqual(
            parse_date_range("2025년 12월 1일부터 2026년 1월 15일까지"),
            {"startDate": "2025-12-01", "endDate": "2026-01-15"},
        )

    def test_iso_range(self):
        self.assertEqual(
            parse_date_range("2026-01-01 ~ 2026-01-31 상담"),
            {"startDate": "2026-01-01", "endDate": "2026-01-31"},
        )

    def test_recent_months_clamps_month_end(self):
        self.assertEqual(
            parse_date_range("최근 3개월", today=date(2026, 5, 31)),
            {"startDate": "2026-02-28", "endDate": "2026-05-31"},
        )

    def test_past_weeks(self):
        self.assertEqual(
            parse_date_range("지난 2주 지각", today=date(2026, 1, 10)),
            {"startDate": "2025-12-27", "endDate": "2026-01-10"},
        )

    def test_single_month(self):
        self.assertEqual(parse_date_range("26년 2월 리콜"), {"startDate": "2026-02-01", "endDate": "2026-02-28"})
        self.assertEqual(parse_date_range("2024년 2월"), {"startDate": "2024-02-01", "endDate": "2024-02-29"})

    def test_this_year_and_month(self):
        today = date(2026, 10, 19)
        self.assertEqual(parse_date_range("올해 매출", today), {"startDate": "2026-01-01", "endDate": "2026-10-19"})
        self.assertEqual(parse_date_range("이번 달 매출", today), {"startDate": "2026-10-01", "endDate": "2026-10-19"})

    def test_no_match(self):
        self.assertIsNone(parse_date_range("직원 명단 보여줘"))
        self.assertIsNone(parse_date_range(""))

    def test_invalid_date_falls_through(self):
        self.assertIsNone(parse_date_range("26년 13월"))
        self.assertEqual(
            parse_date_range("26년 13월 말고 올해", today=date(2026, 3, 1)),
            {"startDate": "2026-01-01", "endDate": "2026-03-01"},
        )


# --- Conversation assembly ---

class TestBuildConversation(unittest.TestCase):

    def test_history_roles_and_blank_turns(self):
        request = AnalysisRequest(
            tenant_id=TENANT,
            message="그럼 2월은?",
            conversationHistory=[
                {"role": "user", "content": "1월 리콜 건수"},
                {"role": "assistant", "content": "42건입니다."},
                {"role": "system", "content": "ignored"},
                {"role": "user", "content": "   "},
            ],
        )
        turns = build_conversation(request).turns
        self.assertEqual([t.role for t in turns], ["user", "model", "user"])
        self.assertEqual(turns[1].text, "42건입니다.")
        self.assertEqual(turns[-1].text, "그럼 2월은?")

    def test_explicit_date_range_and_files(self):
        request = AnalysisRequest(
            tenant_id=TENANT,
            message="최근 3개월 비교",
            dateRange={"startDate": "2026-01-01", "endDate": "2026-01-31"},
            attachedFiles=[{"name": "sales.xlsx", "renderedSummary": "rows: 10"}],
        )
        text = build_conversation(request).last.text
        self.assertEqual(
            text,
            "최근 3개월 비교\n\n(참고: 분석 기간 2026-01-01 ~ 2026-01-31)"
            "\n\n[ATTACHED_FILE: sales.xlsx]\nrows: 10\n[/ATTACHED_FILE: sales.xlsx]",
        )

    def test_date_phrase_in_message(self):
        request = AnalysisRequest(tenant_id=TENANT, message="이번 달 지각")
        text = build_conversation(request, today=date(2026, 10, 19)).last.text
        self.assertTrue(text.endswith("(참고: 분석 기간 2026-10-01 ~ 2026-10-19)"))

    def test_tenant_never_enters_conversation(self):
        request = AnalysisRequest(tenant_id=TENANT, message="직원 수")
        self.assertNotIn(TENANT, build_conversation(request).last.text)

    def test_conversation_is_immutable(self):
        empty = Conversation()
        grown = empty.append(ConversationTurn.user_text("hi"))
        self.assertEqual(len(empty), 0)
        self.assertEqual(len(grown), 1)


# --- Loop controller ---

class TestAgentLoop(unittest.TestCase):

    def run_async(self, coro):
        return asyncio.run(coro)

    def analyze(self, agent, message="이번 달 지각 현황"):
        return self.run_async(agent.analyze(AnalysisRequest(tenant_id=TENANT, message=message)))

    def test_direct_answer(self):
        model = ScriptedModel([text_turn("지각은 없습니다.")])
        response = self.analyze(make_agent(model))
        self.assertEqual(response.message, "지각은 없습니다.")
        self.assertIsNone(response.error)
        self.assertEqual(model.calls[0]["system_instruction"], "test prompt")

    def test_tool_results_follow_request_order_with_tokens(self):
        first = ToolCall("query_table", {"table_name": "attendance_records"}, continuation_token=b"sig-1", call_id="c1")
        second = ToolCall("get_database_schema", {}, continuation_token=b"sig-2", call_id="c2")
        model_turn = call_turn(first, second)
        model = ScriptedModel([model_turn, text_turn("완료")])
        dispatcher = RecordingDispatcher()

        response = self.analyze(make_agent(model, dispatcher=dispatcher))

        self.assertEqual(response.message, "완료")
        self.assertEqual(
            [(t, name) for t, name, _ in dispatcher.calls],
            [(TENANT, "query_table"), (TENANT, "get_database_schema")],
        )
        replay = model.calls[1]["conversation"].turns
        self.assertIs(replay[-2], model_turn)
        results = [p.result for p in replay[-1].parts]
        self.assertEqual([r.name for r in results], ["query_table", "get_database_schema"])
        self.assertEqual([r.continuation_token for r in results], [b"sig-1", b"sig-2"])
        self.assertEqual([r.call_id for r in results], ["c1", "c2"])
        self.assertEqual(results[0].response, {"tool": "query_table", "n": 1})

    def test_iteration_cap(self):
        call = call_turn(ToolCall("get_database_schema", {}))
        model = ScriptedModel([call, call, call, text_turn("부분 결과 요약")])
        dispatcher = RecordingDispatcher()

        response = self.analyze(make_agent(model, max_tool_rounds=3, dispatcher=dispatcher))

        self.assertEqual(len(dispatcher.calls), 3)
        self.assertEqual(len(model.calls), 4)
        self.assertIsNone(model.calls[-1]["tools"])
        self.assertEqual(response.message, "부분 결과 요약")

    def test_cap_with_no_final_text_uses_fallback(self):
        model = ScriptedModel([call_turn(ToolCall("get_database_schema", {}))], repeat_last=True)
        response = self.analyze(make_agent(model, max_tool_rounds=2))
        self.assertEqual(response.message, FALLBACK_ANSWER)

    def test_empty_answer_uses_fallback(self):
        model = ScriptedModel([ConversationTurn(role="model")])
        self.assertEqual(self.analyze(make_agent(model)).message, FALLBACK_ANSWER)

    def test_transport_error(self):
        model = ScriptedModel([], error=ModelTransportError("quota exceeded"))
        response = self.analyze(make_agent(model))
        self.assertEqual(response.message, "")
        self.assertEqual(response.error, "quota exceeded")

    def test_blank_tenant(self):
        model = ScriptedModel([text_turn("x")])
        response = self.run_async(make_agent(model).analyze(AnalysisRequest(tenant_id=" ", message="hi")))
        self.assertTrue(response.error)
        self.assertEqual(model.calls, [])

    def test_run_async_reads_tenant_from_session_state(self):
        model = ScriptedModel([call_turn(ToolCall("get_database_schema", {})), text_turn("직원은 5명입니다.")])
        dispatcher = RecordingDispatcher()
        agent = make_agent(model, dispatcher=dispatcher)

        earlier = MagicMock(invocation_id="inv-0", author="user",
                            content=types.Content(role="user", parts=[types.Part(text="안녕")]))
        ctx = MagicMock()
        ctx.invocation_id = "inv-1"
        ctx.user_content = types.Content(role="user", parts=[types.Part(text="직원 수")])
        ctx.session.state = {"tenant_id": TENANT}
        ctx.session.events = [earlier]

        async def collect():
            return [event async for event in agent.run_async(ctx)]

        events = self.run_async(collect())
        self.assertEqual(events[-1].content.parts[0].text, "직원은 5명입니다.")
        self.assertEqual(dispatcher.calls[0][0], TENANT)
        self.assertEqual([t.text for t in model.calls[0]["conversation"]], ["안녕", "직원 수"])

    def test_run_async_without_tenant(self):
        model = ScriptedModel([text_turn("x")])
        ctx = MagicMock()
        ctx.invocation_id = "inv-1"
        ctx.user_content = types.Content(role="user", parts=[types.Part(text="직원 수")])
        ctx.session.state = {}
        ctx.session.events = []

        async def collect():
            return [event async for event in make_agent(model).run_async(ctx)]

        events = self.run_async(collect())
        self.assertEqual(events[0].content.parts[0].text, "클리닉 ID가 필요합니다.")
        self.assertEqual(model.calls, [])

    def test_answer_text_is_returned_unchanged(self):
        answer = "결과\n```sql\nSELECT 1\n```"
        model = ScriptedModel([text_turn("  " + answer + "\n")])
        self.assertEqual(self.analyze(make_agent(model)).message, answer)

    def test_run_async_reports_failures_in_korean(self):
        model = ScriptedModel([], error=ModelTransportError(""))
        ctx = MagicMock()
        ctx.invocation_id = "inv-1"
        ctx.user_content = types.Content(role="user", parts=[types.Part(text="직원 수")])
        ctx.session.state = {"tenant_id": TENANT}
        ctx.session.events = []

        async def collect():
            return [event async for event in make_agent(model).run_async(ctx)]

        events = self.run_async(collect())
        self.assertEqual(events[-1].content.parts[0].text, ANALYSIS_ERROR)

    def test_agent_refuses_to_start_without_tools(self):
        with patch("clinic_agent.core.agent.build_gemini_tools_from_mcp", return_value=[]):
            with self.assertRaises(RuntimeError):
                Agent(Config(), model_client=ScriptedModel([]), system_prompt="test prompt")


# --- Gemini adapter ---

class TestGeminiModelClient(unittest.TestCase):

    def test_tool_call_round_trip_keeps_signature(self):
        content = types.Content(role="model", parts=[
            types.Part(
                function_call=types.FunctionCall(id="c1", name="query_table", args={"table_name": "tasks"}),
                thought_signature=b"opaque",
            ),
        ])
        turn = turn_from_gemini(content)
        self.assertEqual(turn.tool_calls, [ToolCall("query_table", {"table_name": "tasks"}, b"opaque", "c1")])

        part = turn_to_gemini(turn).parts[0]
        self.assertEqual(part.thought_signature, b"opaque")
        self.assertEqual(part.function_call.name, "query_table")
        self.assertEqual(part.function_call.id, "c1")

    def test_tool_result_response_is_an_object(self):
        result = ToolResult("get_database_schema", [{"table": "tasks"}], call_id="c2")
        part = turn_to_gemini(ConversationTurn.tool_results([result])).parts[0]
        self.assertEqual(part.function_response.response, {"result": [{"table": "tasks"}]})
        self.assertEqual(part.function_response.id, "c2")

    def test_thought_text_is_kept_but_not_shown(self):
        content = types.Content(role="model", parts=[
            types.Part(text="thinking", thought=True),
            types.Part(text="답변", thought_signature=b"t"),
        ])
        turn = turn_from_gemini(content)
        self.assertEqual(turn.text, "답변")
        self.assertEqual(turn.parts[1], TextPart("답변", continuation_token=b"t"))

    def test_generate(self):
        client = GeminiModelClient(Config(model_name="gemini-test", temperature=0.3))
        client._client = MagicMock()
        client._client.models.generate_content.return_value = types.GenerateContentResponse(
            candidates=[types.Candidate(content=types.Content(role="model", parts=[types.Part(text="ok")]))]
        )
        conversation = Conversation().append(ConversationTurn.user_text("hi"))

        turn = asyncio.run(client.generate(conversation, system_instruction="sys", tools=None))

        self.assertEqual(turn.text, "ok")
        kwargs = client._client.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-test")
        self.assertEqual(kwargs["config"].temperature, 0.3)
        self.assertEqual(kwargs["contents"][0].parts[0].text, "hi")

    def test_generate_wraps_sdk_errors(self):
        client = GeminiModelClient(Config())
        client._client = MagicMock()
        client._client.models.generate_content.side_effect = RuntimeError("503 UNAVAILABLE")
        with self.assertRaises(ModelTransportError):
            asyncio.run(client.generate(Conversation(), system_instruction="", tools=None))


# --- Tool declarations and prompt ---

class TestToolDeclarations(unittest.TestCase):

    def test_sanitize_inlines_refs_and_nullables(self):
        schema = {
            "title": "query_tableArguments",
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "date_range": {"anyOf": [{"$ref": "#/$defs/DateRange"}, {"type": "null"}], "default": None},
            },
            "$defs": {
                "DateRange": {
                    "type": "object",
                    "properties": {"start_date": {"type": "string", "format": "date"}},
                },
            },
        }
        self.assertEqual(
            sanitize_schema(schema),
            {
                "type": "object",
                "properties": {
                    "date_range": {
                        "type": "object",
                        "properties": {"start_date": {"type": "string"}},
                        "nullable": True,
                    },
                },
            },
        )

    def test_registry_builds_three_declarations(self):
        tools = build_gemini_tools_from_mcp(mcp)
        names = sorted(d.name for d in tools[0].function_declarations)
        self.assertEqual(names, ["aggregate_data", "get_database_schema", "query_table"])

    def test_root_agent_has_tool_declarations(self):
        from clinic_agent.core.agent import root_agent

        self.assertTrue(root_agent.gemini_tools)
        self.assertEqual(len(root_agent.gemini_tools[0].function_declarations), 3)

    def test_tools_read_through_list_tools(self):
        tool = SimpleNamespace(name="ping", description="Ping.", parameters={
            "type": "object", "properties": {"n": {"type": "integer", "default": None}},
        })

        class ListingRegistry:
            async def list_tools(self):
                return [tool]

        declaration = build_gemini_tools_from_mcp(ListingRegistry())[0].function_declarations[0]
        self.assertEqual(declaration.name, "ping")
        self.assertEqual(declaration.description, "Ping.")
        self.assertIn("n", declaration.parameters.properties)

    def test_tools_read_through_get_tools(self):
        class OlderRegistry:
            async def get_tools(self):
                return {"pong": SimpleNamespace(name="pong", description="Pong.", parameters=None)}

        declarations = build_gemini_tools_from_mcp(OlderRegistry())[0].function_declarations
        self.assertEqual([d.name for d in declarations], ["pong"])

    def test_system_prompt_lists_tables(self):
        prompt = build_system_prompt()
        self.assertIn("- attendance_records: ", prompt)
        self.assertNotIn("{table_list}", prompt)


if __name__ == "__main__":
    unittest.main()
