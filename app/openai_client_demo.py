# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
OpenAI client demo.

An office assistant agent whose side-effecting tools report to AgentGuard
before running. Start the gateway first (``agent-guard``), then run this
script. Sending the newsletter is irreversible outbound communication, so the
gateway asks for approval on Telegram or through
``POST /approval/<id>/approve``.
"""

import json
import os
from dotenv import load_dotenv
from openai import AzureOpenAI
from agent_guard import guarded_action

load_dotenv()
AGENT_NAME = "OfficeAssistantAgent"

try:
    client = AzureOpenAI(
        api_key = os.getenv("AZURE_OPENAI_API_KEY"),
        api_version = "2023-05-15",
        azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
    )
    print("Azure OpenAI client initialized.")
except Exception as e:  #pylint: disable=broad-exception-caught
    print(f"Warning: Failed to initialize OpenAI client: {e}. OpenAI calls will be skipped.")
    client = None  #pylint: disable=invalid-name

NOTES = ["Quarterly review on Friday", "Order new badges"]
TEMP_FILES = ["report.tmp", "draft.tmp"]
SUBSCRIBERS = ["alice@example.com", "bob@contoso.com"]


def read_notes():
    """Read-only, so not guarded."""
    return json.dumps(NOTES)


@guarded_action(
    name="cleanup_temp_files",
    description="Remove temporary files from the workspace",
    domain="filesystem"
)
def cleanup_temp_files():
    removed = list(TEMP_FILES)
    TEMP_FILES.clear()
    return json.dumps({"status": "success", "removed": removed})


@guarded_action(
    name="send_newsletter",
    description="Send the monthly newsletter to all subscribers",
    domain="communication",
    reversible=False,
    refusal_return_value="DENIED: The newsletter was not approved."
)
def send_newsletter(subject):
    return json.dumps({"status": "success", "subject": subject, "recipients": len(SUBSCRIBERS)})


def _tool(name, description, properties=None, required=None):
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties or {}, "required": required or []},
        }
    }


tools = [
    _tool("read_notes", "Read the user's notes."),
    _tool("cleanup_temp_files", "Delete temporary files from the workspace."),
    _tool("send_newsletter", "Send the newsletter to every subscriber.",
          {"subject": {"type": "string", "description": "Subject line of the newsletter."}}, ["subject"]),
]

funcs = {"read_notes": read_notes, "cleanup_temp_files": cleanup_temp_files, "send_newsletter": send_newsletter}


def call_tool(function_name, arguments):
    """Run a tool the model asked for; guarded tools may return a refusal."""
    function = funcs.get(function_name)
    if not function:
        return json.dumps({"status": "error", "message": f"Unknown tool {function_name}"})
    print(f"LLM wants to call: {function_name}({arguments})")
    result = function(**arguments)
    print(f"Tool response: {result}")
    return result


def run_conversation(prompt, msgs=None):
    """
    Send one prompt to the model and execute the tool calls it makes.
    """

    if not client:
        print("OpenAI client not available. Calling the newsletter tool directly.")
        call_tool("send_newsletter", {"subject": prompt})
        return None
    msgs = msgs or [{"role": "system", "content": "You are an office assistant."}]
    msgs.append({"role": "user", "content": prompt})
    try:
        resp = client.chat.completions.create(
            model=os.getenv("AZURE_OPENAI_DEPLOYMENT_NAME", "gpt-4o"),
            messages=msgs,
            tools=tools,
            tool_choice="auto"
        )
        msg = resp.choices[0].message
        msgs.append(msg)
        for call in msg.tool_calls or []:
            content = call_tool(call.function.name, json.loads(call.function.arguments or "{}"))
            msgs.append({"tool_call_id": call.id, "role": "tool", "name": call.function.name, "content": content})
        if not msg.tool_calls:
            print(f"LLM response: {msg.content}")
    except Exception as exception:  #pylint: disable=broad-except
        print(f"An error occurred during the OpenAI API call: {exception}")
    return msgs


if __name__ == "__main__":
    print(f"Starting {AGENT_NAME} demo...")
    conversation = None  #pylint: disable=invalid-name
    for step in ("What is in my notes?", "Clean up the temporary files.", "Send this month's newsletter."):
        print(f"\n--- {step} ---")
        conversation = run_conversation(step, conversation)
    print("\n--- Demo Finished ---")
