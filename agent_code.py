#!/usr/bin/env python3
"""
Toolbox Assistant Agent
An MCP-powered agent that answers natural language requests with the toolbox server.
"""

import json
import logging
import os
from typing import Any, Callable, Dict, Optional

import anthropic

from toolbox import MCPStdIOClient, MCPClientError
from config import SYSTEM_PROMPT, TOOLS

LOG_DIR = os.environ.get("LOG_DIR", "logs")
MODEL = os.environ.get("ANTHROPIC_MODEL", "claude-haiku-4-5-20251001")
MAX_TOKENS = 4096

agent_logger = logging.getLogger("toolbox_agent")


def configure_logging(log_dir: str = LOG_DIR) -> None:
    """Attach a single FileHandler writing to <log_dir>/agent_tools.log."""
    os.makedirs(log_dir, exist_ok=True)
    normalized = os.path.abspath(os.path.join(log_dir, "agent_tools.log"))
    if not any(isinstance(h, logging.FileHandler) and h.baseFilename == normalized for h in agent_logger.handlers):
        handler = logging.FileHandler(normalized)
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(message)s'))
        agent_logger.addHandler(handler)
    agent_logger.setLevel(logging.INFO)
    agent_logger.propagate = False


class ToolboxAgent:
    def __init__(self, llm: Optional[Any] = None, mcp_client: Optional[MCPStdIOClient] = None):
        self.conversation_history = []
        self.llm = llm
        self.mcp_client = mcp_client

    def start_mcp_server(self):
        """Start the toolbox MCP server via an stdio JSON-RPC client"""
        if self.mcp_client is None:
            self.mcp_client = MCPStdIOClient()
        self.mcp_client.start()
        agent_logger.info("Toolbox MCP Server started")

    def stop_mcp_server(self):
        """Stop the MCP server client if running"""
        if self.mcp_client:
            self.mcp_client.stop()
            self.mcp_client = None
            agent_logger.info("Toolbox MCP Server stopped")

    def call_mcp_tool(self, tool_name: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        """Call a toolbox tool, returning either a result or an error entry."""
        if not self.mcp_client:
            return {"error": "MCP server not started"}

        try:
            return {"result": self.mcp_client.call_tool(tool_name, parameters)}
        except MCPClientError as e:
            return {"error": str(e)}

    def _create_message(self):
        if self.llm is None:
            self.llm = anthropic.Anthropic()
        return self.llm.messages.create(
            model=MODEL,
            max_tokens=MAX_TOKENS,
            system=SYSTEM_PROMPT,
            tools=TOOLS,
            messages=self.conversation_history
        )

    def chat(self, user_message: str, on_update: Optional[Callable[[str], None]] = None) -> str:
        """Process a user message and return the agent's response.

        ``on_update`` receives any text the model emits alongside tool calls.
        """
        self.conversation_history.append({"role": "user", "content": user_message})

        # Agentic loop - keep calling Claude until no more tool uses
        while True:
            response = self._create_message()

            if response.stop_reason == "tool_use":
                self.conversation_history.append({"role": "assistant", "content": response.content})

                tool_results = []
                for block in response.content:
                    if block.type == "text" and on_update:
                        on_update(block.text)
                    if block.type == "tool_use":
                        agent_logger.info(f"Agent tool call: {block.name} - Parameters: {block.input}")
                        result = self.call_mcp_tool(block.name, block.input)
                        agent_logger.info(f"Agent tool result: {block.name} - Result: {result}")

                        tool_results.append({
                            "type": "tool_result",
                            "tool_use_id": block.id,
                            "content": json.dumps(result)
                        })

                self.conversation_history.append({"role": "user", "content": tool_results})

            elif response.stop_reason == "end_turn":
                final_response = "".join(
                    block.text for block in response.content if getattr(block, "type", None) == "text"
                )
                self.conversation_history.append({"role": "assistant", "content": final_response})
                return final_response
            else:
                agent_logger.warning(f"Unexpected stop reason: {response.stop_reason}")
                return "I encountered an error processing your request."


def main():
    configure_logging()
    print("=" * 60)
    print("Toolbox Assistant Agent")
    print("=" * 60)
    print("\nAsk about the weather, your location, courses or database collections.")
    print("Commands: 'quit' or 'exit' to stop\n")

    agent = ToolboxAgent()
    try:
        agent.start_mcp_server()
    except MCPClientError:
        agent_logger.exception("Failed to start MCP server")
        print("Failed to start MCP server (see agent log for details).")
        raise SystemExit(1)

    try:
        while True:
            user_input = input("\nYou: ").strip()

            if user_input.lower() in ["quit", "exit", "bye"]:
                print("\nGoodbye!")
                break

            if not user_input:
                continue

            print("\nAgent thinking...")
            response = agent.chat(user_input, on_update=print)
            print(f"\nAgent: {response}")

    except (KeyboardInterrupt, EOFError):
        print("\n\nGoodbye!")
    finally:
        agent.stop_mcp_server()


if __name__ == "__main__":
    main()
