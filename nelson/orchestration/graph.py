"""LangGraph wiring for the pipeline state machine."""

from __future__ import annotations

from langgraph.graph import END, StateGraph

from nelson.orchestration.nodes import PipelineNodes
from nelson.orchestration.state import PipelineState


def build_graph(nodes: PipelineNodes):
    """Builds the pipeline graph.

    Flow:
    classify -> extract_and_search -> diagnose -> plan_treatment
        -> validate_safety -> assemble

    Any failure recorded by classify, extract_and_search, diagnose or
    plan_treatment routes to fall_back.  validate_safety degrades in place
    and always proceeds to assemble.
    """
    graph = StateGraph(PipelineState)

    # --- Nodes ---
    graph.add_node("classify", nodes.classify)
    graph.add_node("extract_and_search", nodes.extract_and_search)
    graph.add_node("diagnose", nodes.diagnose)
    graph.add_node("plan_treatment", nodes.plan_treatment)
    graph.add_node("validate_safety", nodes.validate_safety)
    graph.add_node("assemble", nodes.assemble)
    graph.add_node("fall_back", nodes.fall_back)

    # --- Edges ---
    graph.set_entry_point("classify")
    for source, target in (
        ("classify", "extract_and_search"),
        ("extract_and_search", "diagnose"),
        ("diagnose", "plan_treatment"),
        ("plan_treatment", "validate_safety"),
    ):
        graph.add_conditional_edges(source, _route_failure, {"continue": target, "fallback": "fall_back"})

    graph.add_edge("validate_safety", "assemble")
    graph.add_edge("assemble", END)
    graph.add_edge("fall_back", END)

    return graph.compile()


def _route_failure(state: PipelineState) -> str:
    """Routes to the fallback node once any hard-dependency stage has failed."""
    if state["run"].failure is not None:
        return "fallback"
    return "continue"
