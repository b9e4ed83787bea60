"""
Tests for turning result sets into Bot API objects.
"""

from ai_router.schemas import ResultItem, ResultSet
from ai_router.telegram_bot import formatter


def choice_set():
    return ResultSet(
        items=[
            ResultItem(id="svc:a", title="✅ a", reply_text="/use a", token="svc:a"),
            ResultItem(id="svc:b", title="⬜ b", reply_text="/use b", token="svc:b"),
        ],
        header="Choose a service:",
    )


class TestInlineResults:

    def test_articles_carry_title_description_and_text(self):
        result = ResultSet(items=[
            ResultItem(id="ai-1", title="💬 AI reply", description="short", reply_text="full *text*", markdown=True),
        ])

        article = formatter.to_inline_results(result)[0].to_dict()

        assert article["type"] == "article"
        assert article["id"] == "ai-1"
        assert article["title"] == "💬 AI reply"
        assert article["description"] == "short"
        assert article["input_message_content"]["message_text"] == "full *text*"
        assert article["input_message_content"]["parse_mode"] == "Markdown"

    def test_plain_items_have_no_parse_mode_or_description(self):
        result = ResultSet(items=[ResultItem(id="status", title="t", reply_text="r")])

        article = formatter.to_inline_results(result)[0].to_dict()

        assert "description" not in article
        assert "parse_mode" not in article["input_message_content"]

    def test_order_is_kept(self):
        ids = [a.id for a in formatter.to_inline_results(choice_set())]
        assert ids == ["svc:a", "svc:b"]


class TestMessage:

    def test_choice_set_becomes_keyboard(self):
        outgoing = formatter.to_message(choice_set())

        assert outgoing.text == "Choose a service:"
        keyboard = outgoing.reply_markup.to_dict()["inline_keyboard"]
        assert keyboard == [
            [{"text": "✅ a", "callback_data": "svc:a"}],
            [{"text": "⬜ b", "callback_data": "svc:b"}],
        ]

    def test_single_item_sends_reply_text(self):
        outgoing = formatter.to_message(ResultSet(items=[
            ResultItem(id="ai-1", title="t", reply_text="answer", markdown=True),
        ]))

        assert outgoing.text == "answer"
        assert outgoing.parse_mode == "Markdown"
        assert outgoing.reply_markup is None

    def test_empty_set_sends_nothing(self):
        assert formatter.to_message(ResultSet()) is None


class TestToast:

    def test_toast_is_truncated(self):
        assert formatter.to_toast(ResultSet(toast="x" * 300)) == "x" * 200

    def test_no_toast(self):
        assert formatter.to_toast(ResultSet()) is None


class TestTelegramLimits:

    def test_inline_text_is_cut_to_message_limit(self):
        result = ResultSet(items=[ResultItem(id="ai-1", title="t", reply_text="x" * 5000, markdown=True)])

        article = formatter.to_inline_results(result)[0].to_dict()

        assert len(article["input_message_content"]["message_text"]) == 4096

    def test_inline_results_without_markdown(self):
        result = ResultSet(items=[ResultItem(id="ai-1", title="t", reply_text="*x", markdown=True)])

        article = formatter.to_inline_results(result, markdown=False)[0].to_dict()

        assert "parse_mode" not in article["input_message_content"]

    def test_long_result_id_is_hashed(self):
        long_id = "mdl:" + "very-long-model-name-" * 4
        result = ResultSet(items=[ResultItem(id=long_id, title="t", reply_text="r")])

        article_id = formatter.to_inline_results(result)[0].id

        assert len(article_id.encode("utf-8")) <= 64
        assert article_id == formatter.to_inline_results(result)[0].id

    def test_overlong_callback_token_is_left_out(self):
        long_token = "mdl:" + "m" * 70
        result = ResultSet(
            items=[
                ResultItem(id="mdl:m1", title="✅ m1", reply_text="/model m1", token="mdl:m1"),
                ResultItem(id=long_token, title="⬜ long", reply_text="/model long", token=long_token),
            ],
            header="Choose a model:",
        )

        keyboard = formatter.to_keyboard(result).to_dict()["inline_keyboard"]

        assert keyboard == [[{"text": "✅ m1", "callback_data": "mdl:m1"}]]

    def test_callback_limit_counts_bytes(self):
        token = "svc:" + "é" * 31  # 66 bytes, 35 characters
        result = ResultSet(items=[ResultItem(id="x", title="é", reply_text="r", token=token)])

        assert not formatter.to_keyboard(result).inline_keyboard
