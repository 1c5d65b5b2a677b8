#!/usr/bin/env python3
"""
AgentRelay CLI

Command-line interface for an AgentRelay server.

Usage:
    agentrelay status
    agentrelay discover price_feed --min-rating 70
    agentrelay agent <agent-id>
    agentrelay tasks <agent-id>
    agentrelay leaderboard
    agentrelay find price_feed
    agentrelay orchestrate tasks.json --payment 0xabc... --strategy parallel
"""

import argparse
import json
import logging
import os
import sys

import requests

from .logs import configure_logging


class AgentRelayCLI:
    """CLI client for AgentRelay."""

    def __init__(self, base_url: str = None):
        self.base_url = (base_url or os.environ.get("AGENTRELAY_URL", "http://localhost:8080")).rstrip("/")

    def _request(self, method: str, endpoint: str, headers: dict = None, **kwargs):
        url = f"{self.base_url}{endpoint}"
        try:
            response = requests.request(method, url, headers=headers, timeout=120, **kwargs)
        except requests.exceptions.ConnectionError:
            print(f"❌ Cannot connect to AgentRelay at {self.base_url}", file=sys.stderr)
            print("   Is the server running? Start it with: agentrelay-server", file=sys.stderr)
            sys.exit(1)

        if response.status_code == 404:
            return None
        if response.status_code == 402:
            return response.json()
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            print(f"❌ API error: {e.response.status_code} {e.response.text}", file=sys.stderr)
            sys.exit(1)
        return response.json()

    @staticmethod
    def _print_json(data):
        print(json.dumps(data, indent=2, default=str))

    def status(self, json_output: bool = False):
        """Check server health."""
        result = self._request("GET", "/health")
        if json_output:
            self._print_json(result)
            return
        print(f"✅ AgentRelay {result.get('version', '?')} at {self.base_url}")
        print(f"   Registered agents: {result.get('agents', 0)}")

    def _print_agent_line(self, entry: dict):
        rep = entry.get("reputation") or {}
        caps = ", ".join(entry.get("capabilities", []))
        print(f"  ★ {rep.get('rating', '?'):>3}  {entry.get('name', '')} ({entry.get('id', '')[:8]}...)")
        print(f"        tasks {rep.get('successful_tasks', 0)}/{rep.get('total_tasks', 0)} | {caps}")

    def discover(self, capability: str = None, token: str = None, min_rating: int = None,
                 limit: int = 20, json_output: bool = False):
        """Find agents by capability."""
        params = {"limit": limit}
        if capability:
            params["capability"] = capability
        if token:
            params["token"] = token
        if min_rating is not None:
            params["min_rating"] = min_rating

        result = self._request("GET", "/discover", params=params)
        agents = result.get("agents", [])

        if json_output:
            self._print_json(agents)
            return

        if not agents:
            print("No agents found.")
            return

        print(f"\n🤖 Agents ({len(agents)}):\n")
        for agent in agents:
            self._print_agent_line(agent)

    def agent(self, agent_id: str, json_output: bool = False):
        """Show one agent with its reputation."""
        result = self._request("GET", f"/agents/{agent_id}")
        if result is None:
            print(f"❌ Agent {agent_id} not found", file=sys.stderr)
            sys.exit(1)

        if json_output:
            self._print_json(result)
            return

        agent = result["agent"]
        rep = result.get("reputation") or {}
        print(f"\n🤖 {agent['name']} ({agent['id']})")
        print(f"   Owner:        {agent.get('owner', '')}")
        print(f"   Endpoint:     {agent.get('endpoint', '')}")
        print(f"   Capabilities: {', '.join(agent.get('capabilities', []))}")
        print(f"   Tokens:       {', '.join(agent.get('payment_tokens', []))}")
        print(f"   Rating:       {rep.get('rating', '?')}")
        print(f"   Tasks:        {rep.get('successful_tasks', 0)} ok / {rep.get('failed_tasks', 0)} failed")
        print(f"   Avg latency:  {rep.get('avg_response_time_ms', 0)} ms")

    def tasks(self, agent_id: str, limit: int = 20, json_output: bool = False):
        """Show an agent's task history."""
        result = self._request("GET", f"/agents/{agent_id}/tasks", params={"limit": limit})
        tasks = (result or {}).get("tasks", [])

        if json_output:
            self._print_json(tasks)
            return

        if not tasks:
            print("No tasks found.")
            return

        print(f"\n📋 Tasks ({len(tasks)}):\n")
        for task in tasks:
            ts = (task.get("started_at") or "")[:16].replace("T", " ")
            mark = "✓" if task.get("status") == "completed" else "✗"
            print(f"{mark} [{ts}] {task.get('task_type', ''):<20} {task.get('payment_amount', 0)} {task.get('payment_token', '')}")
            if task.get("error"):
                print(f"   {task['error'][:90]}")

    def leaderboard(self, limit: int = 10, json_output: bool = False):
        """Show top rated agents."""
        result = self._request("GET", "/leaderboard", params={"limit": limit})
        entries = result.get("leaderboard", [])

        if json_output:
            self._print_json(entries)
            return

        if not entries:
            print("No agents registered.")
            return

        print("\n🏆 Leaderboard:\n")
        for entry in entries:
            rep = entry.get("reputation", {})
            print(f"  {entry['rank']:>2}. {entry['agent']['name']:<30} rating {rep.get('rating', '?'):>3}  tasks {rep.get('total_tasks', 0)}")

    def capabilities(self, json_output: bool = False):
        """List capabilities offered in the registry."""
        result = self._request("GET", "/capabilities")
        caps = result.get("capabilities", [])

        if json_output:
            self._print_json(caps)
            return

        if not caps:
            print("No capabilities registered.")
            return

        print(f"\n🧩 Capabilities ({len(caps)}):\n")
        for cap in caps:
            print(f"  • {cap}")

    def find(self, capability: str, token: str = None, json_output: bool = False):
        """Show the best agent for a capability."""
        params = {"token": token} if token else None
        result = self._request("GET", f"/find/{capability}", params=params)
        if result is None:
            print(f"No agent found for capability: {capability}")
            return

        if json_output:
            self._print_json(result)
            return

        print(f"\n🎯 Best agent for {capability}:\n")
        self._print_agent_line(result["best_agent"])

    def orchestrate(self, tasks_file: str, payment: str = None, strategy: str = "sequential",
                    json_output: bool = False):
        """Run a workflow from a JSON file of tasks."""
        try:
            with open(tasks_file, "r", encoding="utf-8") as f:
                workflow = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"❌ Cannot read tasks from {tasks_file}: {e}", file=sys.stderr)
            sys.exit(1)

        if isinstance(workflow, list):
            workflow = {"tasks": workflow}
        workflow.setdefault("strategy", strategy)

        headers = {"Content-Type": "application/json"}
        if payment:
            headers["X-Payment"] = payment

        result = self._request("POST", "/orchestrate", headers=headers, json=workflow)

        if json_output:
            self._print_json(result)
            return

        if result.get("code") == "PAYMENT_REQUIRED":
            print(f"💳 Payment required: {result['maxAmountRequired']} {result['tokenType']} to {result['payTo']}")
            for step in result.get("instructions", []):
                print(f"   {step}")
            return

        summary = result.get("orchestration", {})
        status = "✅" if result.get("success") else "⚠️"
        print(f"\n{status} {summary.get('tasks_completed', 0)}/{summary.get('tasks_requested', 0)} tasks completed "
              f"({summary.get('strategy', '')}, {result.get('total_time_ms', 0)} ms)\n")
        for task in result.get("results", []):
            mark = "✓" if task.get("success") else "✗"
            print(f"  {mark} {task.get('capability', ''):<20} {task.get('agent_name', '')}")
            if task.get("error"):
                print(f"      {task['error'][:90]}")


def main():
    parser = argparse.ArgumentParser(
        description="AgentRelay CLI - discover agents and run paid workflows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", help="AgentRelay server URL (default: $AGENTRELAY_URL or http://localhost:8080)")
    parser.add_argument("--json", action="store_true", help="Output raw JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("status", help="Check server status")

    discover_parser = subparsers.add_parser("discover", help="Find agents by capability")
    discover_parser.add_argument("capability", nargs="?", help="Capability to search for")
    discover_parser.add_argument("--token", choices=["STX", "sBTC"], help="Accepted payment token")
    discover_parser.add_argument("--min-rating", type=int, help="Minimum rating (0-100)")
    discover_parser.add_argument("--limit", type=int, default=20, help="Number of results")

    agent_parser = subparsers.add_parser("agent", help="Show an agent")
    agent_parser.add_argument("agent_id", help="Agent ID")

    tasks_parser = subparsers.add_parser("tasks", help="Show an agent's task history")
    tasks_parser.add_argument("agent_id", help="Agent ID")
    tasks_parser.add_argument("--limit", type=int, default=20, help="Number of tasks")

    leaderboard_parser = subparsers.add_parser("leaderboard", help="Top rated agents")
    leaderboard_parser.add_argument("--limit", type=int, default=10, help="Number of agents")

    subparsers.add_parser("capabilities", help="List capabilities")

    find_parser = subparsers.add_parser("find", help="Best agent for a capability")
    find_parser.add_argument("capability", help="Capability")
    find_parser.add_argument("--token", choices=["STX", "sBTC"], help="Accepted payment token")

    orchestrate_parser = subparsers.add_parser("orchestrate", help="Run a paid workflow")
    orchestrate_parser.add_argument("tasks_file", help="JSON file with a task list or {tasks, strategy}")
    orchestrate_parser.add_argument("--payment", "-p", help="Payment transaction ID")
    orchestrate_parser.add_argument("--strategy", "-s", default="sequential",
                                    choices=["sequential", "parallel", "best_agent"], help="Execution strategy")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.verbose:
        configure_logging(logging.DEBUG)

    cli = AgentRelayCLI(base_url=args.url)

    if args.command == "status":
        cli.status(json_output=args.json)
    elif args.command == "discover":
        cli.discover(args.capability, token=args.token, min_rating=args.min_rating,
                     limit=args.limit, json_output=args.json)
    elif args.command == "agent":
        cli.agent(args.agent_id, json_output=args.json)
    elif args.command == "tasks":
        cli.tasks(args.agent_id, limit=args.limit, json_output=args.json)
    elif args.command == "leaderboard":
        cli.leaderboard(limit=args.limit, json_output=args.json)
    elif args.command == "capabilities":
        cli.capabilities(json_output=args.json)
    elif args.command == "find":
        cli.find(args.capability, token=args.token, json_output=args.json)
    elif args.command == "orchestrate":
        cli.orchestrate(args.tasks_file, payment=args.payment, strategy=args.strategy, json_output=args.json)


if __name__ == "__main__":
    main()
