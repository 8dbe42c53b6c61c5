"""
Tree dumps and source rendering for parsed scripts.

``script_to_dict``/``script_from_dict`` give a JSON-safe, tagged view of the
rule tree (used by ``obby parse`` and the inspection server). ``render_script``
turns a tree back into script text that parses to an equal tree.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any, Dict, List, Optional

from . import ast_nodes
from .events import EventKind
from .parser.actions import BUILTIN_FUNCTIONS
from .version import TREE_FORMAT_VERSION

_ACTION_KINDS: Dict[str, type] = {
    "command": ast_nodes.CommandAction,
    "sendnotice": ast_nodes.SendNoticeAction,
    "if": ast_nodes.IfAction,
    "while": ast_nodes.WhileAction,
    "for_range": ast_nodes.ForRangeAction,
    "for_c": ast_nodes.ForCAction,
    "var": ast_nodes.VarDeclAction,
    "array_assign": ast_nodes.ArrayAssignAction,
    "arithmetic": ast_nodes.ArithmeticAction,
    "return": ast_nodes.ReturnAction,
    "break": ast_nodes.BreakAction,
    "continue": ast_nodes.ContinueAction,
    "function_def": ast_nodes.FunctionDefAction,
    "function_call": ast_nodes.FunctionCallAction,
    "cap": ast_nodes.CapabilityAction,
    "isupport": ast_nodes.IsupportAction,
}
_KIND_BY_TYPE = {cls: kind for kind, cls in _ACTION_KINDS.items()}

_ACTION_LISTS = {"body", "else_body"}


def bool_expr_to_dict(expr: ast_nodes.BoolExpr) -> Dict[str, Any]:
    if isinstance(expr, ast_nodes.SimpleExpr):
        cond = expr.condition
        return {"kind": "simple", "variable": cond.variable, "operator": cond.operator, "value": cond.value}
    if isinstance(expr, ast_nodes.AndExpr):
        return {"kind": "and", "left": bool_expr_to_dict(expr.left), "right": bool_expr_to_dict(expr.right)}
    if isinstance(expr, ast_nodes.OrExpr):
        return {"kind": "or", "left": bool_expr_to_dict(expr.left), "right": bool_expr_to_dict(expr.right)}
    if isinstance(expr, ast_nodes.ParenExpr):
        return {"kind": "paren", "inner": bool_expr_to_dict(expr.inner)}
    raise TypeError(f"Unknown boolean expression node {type(expr).__name__}")


def bool_expr_from_dict(data: Dict[str, Any]) -> ast_nodes.BoolExpr:
    kind = data.get("kind")
    if kind == "simple":
        return ast_nodes.SimpleExpr(
            condition=ast_nodes.Condition(
                variable=data["variable"], operator=data.get("operator"), value=data.get("value")
            )
        )
    if kind == "and":
        return ast_nodes.AndExpr(left=bool_expr_from_dict(data["left"]), right=bool_expr_from_dict(data["right"]))
    if kind == "or":
        return ast_nodes.OrExpr(left=bool_expr_from_dict(data["left"]), right=bool_expr_from_dict(data["right"]))
    if kind == "paren":
        return ast_nodes.ParenExpr(inner=bool_expr_from_dict(data["inner"]))
    raise ValueError(f"Unknown boolean expression kind {kind!r}")


def action_to_dict(action: ast_nodes.Action) -> Dict[str, Any]:
    data: Dict[str, Any] = {"kind": _KIND_BY_TYPE[type(action)]}
    for f in fields(action):
        if f.name == "span":
            continue
        value = getattr(action, f.name)
        if f.name in _ACTION_LISTS:
            value = None if value is None else [action_to_dict(a) for a in value]
        elif f.name == "condition":
            value = bool_expr_to_dict(value)
        elif isinstance(value, list):
            value = list(value)
        data[f.name] = value
    return data


def action_from_dict(data: Dict[str, Any]) -> ast_nodes.Action:
    kind = data.get("kind")
    cls = _ACTION_KINDS.get(kind or "")
    if cls is None:
        raise ValueError(f"Unknown action kind {kind!r}")
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name == "span" or f.name not in data:
            continue
        value = data[f.name]
        if f.name in _ACTION_LISTS:
            value = None if value is None else [action_from_dict(a) for a in value]
        elif f.name == "condition":
            value = bool_expr_from_dict(value)
        kwargs[f.name] = value
    return cls(**kwargs)


def rule_to_dict(rule: ast_nodes.Rule) -> Dict[str, Any]:
    return {
        "event": rule.event.value,
        "target": rule.target,
        "line": rule.span.line if rule.span else None,
        "actions": [action_to_dict(a) for a in rule.actions],
    }


def rule_from_dict(data: Dict[str, Any]) -> ast_nodes.Rule:
    return ast_nodes.Rule(
        event=EventKind(data["event"]),
        target=data["target"],
        actions=[action_from_dict(a) for a in data.get("actions", [])],
    )


def script_to_dict(script: ast_nodes.Script) -> Dict[str, Any]:
    return {
        "format": TREE_FORMAT_VERSION,
        "filename": script.filename,
        "functions": [action_to_dict(fn) for fn in script.functions],
        "rules": [rule_to_dict(rule) for rule in script.rules],
    }


def script_from_dict(data: Dict[str, Any]) -> ast_nodes.Script:
    functions: List[ast_nodes.FunctionDefAction] = []
    for raw in data.get("functions", []):
        fn = action_from_dict(raw)
        if not isinstance(fn, ast_nodes.FunctionDefAction):
            raise ValueError("functions may only contain function_def entries")
        functions.append(fn)
    return ast_nodes.Script(
        rules=[rule_from_dict(r) for r in data.get("rules", [])],
        functions=functions,
        filename=data.get("filename", "<string>"),
    )


# ---------------------------------------------------------------------------
# Source rendering
# ---------------------------------------------------------------------------

_QUOTE_TRIGGERS = set("&|()<>=!")


def _quote(text: Optional[str], force_chars: bool = False) -> str:
    if text is None:
        return ""
    needs = text == "" or any(ch.isspace() for ch in text)
    if force_chars and any(ch in _QUOTE_TRIGGERS for ch in text):
        needs = True
    return f'"{text}"' if needs else text


def render_condition(cond: ast_nodes.Condition) -> str:
    if cond.operator is None:
        return cond.variable
    if cond.value is None:
        return f"{cond.variable} {cond.operator}"
    return f"{cond.variable} {cond.operator} {_quote(cond.value, force_chars=True)}"


def render_bool_expr(expr: ast_nodes.BoolExpr) -> str:
    if isinstance(expr, ast_nodes.SimpleExpr):
        return render_condition(expr.condition)
    if isinstance(expr, ast_nodes.AndExpr):
        return f"{render_bool_expr(expr.left)} && {render_bool_expr(expr.right)}"
    if isinstance(expr, ast_nodes.OrExpr):
        return f"{render_bool_expr(expr.left)} || {render_bool_expr(expr.right)}"
    if isinstance(expr, ast_nodes.ParenExpr):
        return f"({render_bool_expr(expr.inner)})"
    raise TypeError(f"Unknown boolean expression node {type(expr).__name__}")


def render_actions(actions: List[ast_nodes.Action], level: int = 1) -> List[str]:
    lines: List[str] = []
    for action in actions:
        lines.extend(_render_action(action, level))
    return lines


def _indent(level: int, text: str) -> str:
    return "    " * level + text


def _render_block(header: str, body: List[ast_nodes.Action], level: int) -> List[str]:
    lines = [_indent(level, f"{header} {{")]
    lines.extend(render_actions(body, level + 1))
    lines.append(_indent(level, "}"))
    return lines


def _render_if(action: ast_nodes.IfAction, level: int, keyword: str = "if") -> List[str]:
    lines = _render_block(f"{keyword} ({render_bool_expr(action.condition)})", action.body, level)
    if action.else_body is None:
        return lines
    # The closing brace is folded into the "} else" header.
    lines.pop()
    chained = action.else_body[0] if len(action.else_body) == 1 else None
    if isinstance(chained, ast_nodes.IfAction):
        lines.extend(_render_if(chained, level, keyword="} else if"))
    else:
        lines.extend(_render_block("} else", action.else_body, level))
    return lines


def _render_action(action: ast_nodes.Action, level: int) -> List[str]:
    if isinstance(action, ast_nodes.CommandAction):
        return [_indent(level, " ".join([action.name] + [_quote(a) for a in action.args]))]
    if isinstance(action, ast_nodes.SendNoticeAction):
        return [_indent(level, f'sendnotice {action.target} "{action.message}"')]
    if isinstance(action, ast_nodes.IfAction):
        return _render_if(action, level)
    if isinstance(action, ast_nodes.WhileAction):
        return _render_block(f"while ({render_bool_expr(action.condition)})", action.body, level)
    if isinstance(action, ast_nodes.ForRangeAction):
        step = f" step {action.step}" if action.step != 1 else ""
        return _render_block(f"for (%{action.var} in {action.start}..{action.end}{step})", action.body, level)
    if isinstance(action, ast_nodes.ForCAction):
        header = f"for ({action.init}; {render_bool_expr(action.condition)}; {action.increment})"
        return _render_block(header, action.body, level)
    if isinstance(action, ast_nodes.VarDeclAction):
        if not action.declare and not action.is_const:
            return [_indent(level, f"%{action.name} = {action.value}".rstrip())]
        prefix = "const var" if action.is_const else "var"
        return [_indent(level, f"{prefix} %{action.name} = {action.value}".rstrip())]
    if isinstance(action, ast_nodes.ArrayAssignAction):
        return [_indent(level, f"%{action.name}[{action.index}] = {action.value}")]
    if isinstance(action, ast_nodes.ArithmeticAction):
        if action.operator in ("++", "--"):
            return [_indent(level, f"%{action.target}{action.operator}")]
        return [_indent(level, f"%{action.target} {action.operator} {action.expression}")]
    if isinstance(action, ast_nodes.ReturnAction):
        return [_indent(level, f"return {action.value}".rstrip())]
    if isinstance(action, ast_nodes.BreakAction):
        return [_indent(level, "break")]
    if isinstance(action, ast_nodes.ContinueAction):
        return [_indent(level, "continue")]
    if isinstance(action, ast_nodes.FunctionDefAction):
        params = ", ".join(f"${p}" for p in action.params)
        return _render_block(f"function ${action.name}({params})", action.body, level)
    if isinstance(action, ast_nodes.FunctionCallAction):
        prefix = "" if action.name in BUILTIN_FUNCTIONS else "$"
        return [_indent(level, f"{prefix}{action.name}({', '.join(action.args)})")]
    if isinstance(action, ast_nodes.CapabilityAction):
        return [_indent(level, f"cap {action.name}")]
    if isinstance(action, ast_nodes.IsupportAction):
        suffix = f"={action.value}" if action.value is not None else ""
        return [_indent(level, f"isupport {action.token}{suffix}")]
    raise TypeError(f"Unknown action node {type(action).__name__}")


def render_rule(rule: ast_nodes.Rule) -> str:
    if rule.event == EventKind.NEW_COMMAND:
        header = f"new COMMAND:{rule.target}:"
    else:
        header = f"on {rule.event.value}:{rule.target}:"
    return "\n".join(_render_block(header, rule.actions, 0))


def render_script(script: ast_nodes.Script) -> str:
    chunks = ["\n".join(_render_action(fn, 0)) for fn in script.functions]
    chunks.extend(render_rule(rule) for rule in script.rules)
    return "\n\n".join(chunks) + "\n"
