"""Telegram AI router: inline queries, chats and buttons bridged to OpenAI- and Anthropic-style backends."""
