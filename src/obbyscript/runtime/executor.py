"""
Tree-walking executor.

Every action returns a ControlFlow value; a list walk stops at the first
non-normal result and hands it to its caller, so loops consume Break and
Continue, function calls consume Return, and every other construct simply
propagates what its body produced.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from .. import ast_nodes
from ..errors import ParseError
from ..lexer import is_quoted
from ..parser.actions import BUILTIN_FUNCTIONS
from ..parser.core import parse_statement
from .arithmetic import apply_operator, evaluate_arithmetic, to_int
from .context import ExecutionContext
from .control import BREAK, CONTINUE, NORMAL, Break, Continue, ControlFlow, Return
from .deferred import DeferredAction, DeferredQueue, is_destructive
from .evaluator import ConditionEvaluator
from .scope import NULL_VALUE, Array, EntityRef, Scope, Value, VarKind
from .substitution import SYNTAX_ERROR, Substituter, stringify

log = logging.getLogger(__name__)

DEFAULT_LOOP_LIMIT = 10000
DEFAULT_MAX_CALL_DEPTH = 50


class Executor:
    def __init__(
        self,
        functions: Dict[str, ast_nodes.FunctionDefAction],
        global_scope: Scope,
        deferred: DeferredQueue,
        capabilities: List[str],
        isupport: Optional[Dict[str, Optional[str]]] = None,
        *,
        loop_limit: int = DEFAULT_LOOP_LIMIT,
        max_call_depth: int = DEFAULT_MAX_CALL_DEPTH,
    ) -> None:
        self.functions = functions
        self.global_scope = global_scope
        self.deferred = deferred
        self.capabilities = capabilities
        self.isupport = isupport if isupport is not None else {}
        self.loop_limit = loop_limit
        self.max_call_depth = max_call_depth
        self.substituter = Substituter(self.call_function)
        self.evaluator = ConditionEvaluator(self.substituter)
        self._handlers: Dict[type, Callable[[ast_nodes.Action, ExecutionContext], ControlFlow]] = {
            ast_nodes.CommandAction: self._command,
            ast_nodes.SendNoticeAction: self._send_notice,
            ast_nodes.IfAction: self._if,
            ast_nodes.WhileAction: self._while,
            ast_nodes.ForRangeAction: self._for_range,
            ast_nodes.ForCAction: self._for_c,
            ast_nodes.VarDeclAction: self._var_decl,
            ast_nodes.ArrayAssignAction: self._array_assign,
            ast_nodes.ArithmeticAction: self._arithmetic,
            ast_nodes.ReturnAction: self._return,
            ast_nodes.BreakAction: lambda action, ctx: BREAK,
            ast_nodes.ContinueAction: lambda action, ctx: CONTINUE,
            ast_nodes.FunctionDefAction: self._function_def,
            ast_nodes.FunctionCallAction: self._function_call,
            ast_nodes.CapabilityAction: self._capability,
            ast_nodes.IsupportAction: self._isupport,
        }

    # -- walking ------------------------------------------------------------

    def execute(self, actions: List[ast_nodes.Action], ctx: ExecutionContext) -> ControlFlow:
        for action in actions:
            flow = self.execute_action(action, ctx)
            if flow is not NORMAL:
                return flow
        return NORMAL

    def execute_action(self, action: ast_nodes.Action, ctx: ExecutionContext) -> ControlFlow:
        handler = self._handlers.get(type(action))
        if handler is None:
            raise TypeError(f"Unknown action node {type(action).__name__}")
        return handler(action, ctx)

    # -- commands -----------------------------------------------------------

    def _command(self, action: ast_nodes.CommandAction, ctx: ExecutionContext) -> ControlFlow:
        args: List[str] = []
        for raw in action.args:
            value = self.substituter.substitute(raw, ctx)
            if value == SYNTAX_ERROR:
                log.error("OBS-R002: Syntax error in %s argument %r; action skipped", action.name, raw)
                return NORMAL
            args.append(value)
        self.dispatch(action.name, args, ctx)
        return NORMAL

    def _send_notice(self, action: ast_nodes.SendNoticeAction, ctx: ExecutionContext) -> ControlFlow:
        target = self.substituter.substitute(action.target, ctx)
        message = self.substituter.substitute(action.message, ctx)
        if SYNTAX_ERROR in (target, message):
            log.error("OBS-R002: Syntax error in sendnotice; action skipped")
            return NORMAL
        self.dispatch("NOTICE", [target, message], ctx)
        return NORMAL

    def dispatch(self, name: str, args: List[str], ctx: ExecutionContext) -> None:
        if is_destructive(name, ctx.event):
            self.deferred.push(
                DeferredAction(command=name, args=args, client_name=ctx.client_name, channel_name=ctx.channel_name)
            )
            return
        ctx.host.send_command(name, args, ctx.client, ctx.channel)

    # -- control flow -------------------------------------------------------

    def _if(self, action: ast_nodes.IfAction, ctx: ExecutionContext) -> ControlFlow:
        if self.evaluator.evaluate(action.condition, ctx):
            return self.execute(action.body, ctx)
        if action.else_body is not None:
            return self.execute(action.else_body, ctx)
        return NORMAL

    def _while(self, action: ast_nodes.WhileAction, ctx: ExecutionContext) -> ControlFlow:
        iterations = 0
        while self.evaluator.evaluate(action.condition, ctx):
            if iterations >= self.loop_limit:
                self._loop_limit_hit("while", action)
                break
            iterations += 1
            flow = self.execute(action.body, ctx)
            if isinstance(flow, Break):
                break
            if isinstance(flow, Return):
                return flow
        return NORMAL

    def _for_range(self, action: ast_nodes.ForRangeAction, ctx: ExecutionContext) -> ControlFlow:
        bounds = [self.substituter.substitute(action.start, ctx), self.substituter.substitute(action.end, ctx)]
        if SYNTAX_ERROR in bounds:
            log.error("OBS-R002: Syntax error in for bounds; loop skipped")
            return NORMAL
        start, end = to_int(bounds[0]), to_int(bounds[1])
        step = abs(action.step) if start <= end else -abs(action.step)
        current = start
        iterations = 0
        while (current <= end) if step > 0 else (current >= end):
            if iterations >= self.loop_limit:
                self._loop_limit_hit("for", action)
                break
            iterations += 1
            if not ctx.scope.declare(action.var, str(current)):
                break
            flow = self.execute(action.body, ctx)
            if isinstance(flow, Break):
                break
            if isinstance(flow, Return):
                return flow
            current += step
        return NORMAL

    def _for_c(self, action: ast_nodes.ForCAction, ctx: ExecutionContext) -> ControlFlow:
        try:
            init = parse_statement(action.init)
            increment = parse_statement(action.increment)
        except ParseError as exc:
            log.warning("OBS-R008: Invalid for header: %s", exc.message)
            return NORMAL
        self.execute_action(init, ctx)
        iterations = 0
        while self.evaluator.evaluate(action.condition, ctx):
            if iterations >= self.loop_limit:
                self._loop_limit_hit("for", action)
                break
            iterations += 1
            flow = self.execute(action.body, ctx)
            if isinstance(flow, Break):
                break
            if isinstance(flow, Return):
                return flow
            if isinstance(flow, Continue):
                # continue skips the increment step
                continue
            self.execute_action(increment, ctx)
        return NORMAL

    def _loop_limit_hit(self, kind: str, action: ast_nodes.Action) -> None:
        line = action.span.line if action.span else "?"
        log.warning("OBS-R009: %s loop at line %s stopped after %d iterations", kind, line, self.loop_limit)

    def _return(self, action: ast_nodes.ReturnAction, ctx: ExecutionContext) -> ControlFlow:
        raw = action.value.strip()
        if raw in ("$true", "$false", "$null", ""):
            return Return(raw)
        if is_quoted(raw):
            value: Value = self.substituter.substitute(raw[1:-1], ctx)
        else:
            value = self.substituter.evaluate_value(raw, ctx)
        if value == SYNTAX_ERROR:
            log.error("OBS-R002: Syntax error in return value %r", raw)
            return Return(NULL_VALUE)
        return Return(value)

    # -- variables ----------------------------------------------------------

    def _var_decl(self, action: ast_nodes.VarDeclAction, ctx: ExecutionContext) -> ControlFlow:
        raw = action.value.strip()
        value: Value = self.substituter.evaluate_value(raw, ctx) if raw else ""
        if value == SYNTAX_ERROR:
            log.error("OBS-R002: Syntax error assigning %%%s; action skipped", action.name)
            return NORMAL
        if isinstance(value, Array):
            value = Array(items=list(value.items))
        if action.declare or action.is_const:
            ctx.scope.declare(action.name, value, is_const=action.is_const)
        else:
            ctx.scope.assign(action.name, value)
        return NORMAL

    def _array_assign(self, action: ast_nodes.ArrayAssignAction, ctx: ExecutionContext) -> ControlFlow:
        index_text = self.substituter.substitute(action.index, ctx)
        value = self.substituter.evaluate_value(action.value, ctx)
        if SYNTAX_ERROR in (index_text, value):
            log.error("OBS-R002: Syntax error in %%%s[...] assignment; action skipped", action.name)
            return NORMAL
        index = to_int(index_text)
        if index < 0:
            log.warning("OBS-R011: Negative index %d for %%%s", index, action.name)
            return NORMAL
        var = ctx.scope.lookup(action.name)
        if var is not None and var.is_const:
            log.warning("OBS-R001: Cannot reassign constant variable '%%%s'", action.name)
            return NORMAL
        if var is None or not isinstance(var.value, Array):
            array = Array()
            if var is None:
                ctx.scope.declare(action.name, array)
            else:
                ctx.scope.assign(action.name, array)
        else:
            array = var.value
        element = value if isinstance(value, (str, EntityRef)) else stringify(value)
        array.set(index, element)
        return NORMAL

    def _arithmetic(self, action: ast_nodes.ArithmeticAction, ctx: ExecutionContext) -> ControlFlow:
        var = ctx.scope.lookup(action.target)
        current = to_int(stringify(var.value)) if var is not None else 0
        op = action.operator
        if op in ("++", "--"):
            result = current + (1 if op == "++" else -1)
        else:
            expanded = self.substituter.substitute(action.expression, ctx)
            if expanded == SYNTAX_ERROR:
                log.error("OBS-R002: Syntax error in arithmetic on %%%s; action skipped", action.target)
                return NORMAL
            rhs = evaluate_arithmetic(expanded)
            result = rhs if op == "=" else apply_operator(current, op[0], rhs)
        ctx.scope.assign(action.target, str(result))
        return NORMAL

    # -- functions ----------------------------------------------------------

    def _function_def(self, action: ast_nodes.FunctionDefAction, ctx: ExecutionContext) -> ControlFlow:
        self.define_function(action)
        return NORMAL

    def define_function(self, fn: ast_nodes.FunctionDefAction) -> bool:
        if fn.name in self.functions or fn.name in BUILTIN_FUNCTIONS:
            log.warning("OBS-R012: Function '%s' already defined; keeping the first definition", fn.name)
            return False
        self.functions[fn.name] = fn
        return True

    def _function_call(self, action: ast_nodes.FunctionCallAction, ctx: ExecutionContext) -> ControlFlow:
        args = [self.substituter.evaluate_value(a, ctx) for a in action.args]
        if SYNTAX_ERROR in args:
            log.error("OBS-R002: Syntax error in arguments to %s(); call skipped", action.name)
            return NORMAL
        self.call_function(action.name, args, ctx)
        return NORMAL

    def call_function(self, name: str, args: List[Value], ctx: ExecutionContext) -> Optional[Value]:
        if name in BUILTIN_FUNCTIONS:
            return self._builtin(name, args, ctx)
        fn = self.functions.get(name)
        if fn is None:
            log.warning("OBS-R005: Unknown function '%s'", name)
            return None
        if len(args) != len(fn.params):
            log.warning("OBS-R006: %s() expects %d arguments, got %d", name, len(fn.params), len(args))
            return None
        if ctx.call_depth >= self.max_call_depth:
            log.warning("OBS-R007: Call depth limit %d reached in %s()", self.max_call_depth, name)
            return None
        scope = Scope(parent=self.global_scope)
        try:
            for param, value in zip(fn.params, args):
                scope.declare(param, value)
            flow = self.execute(fn.body, ctx.child(scope))
        finally:
            scope.variables.clear()
        if isinstance(flow, Return):
            return flow.value
        return None

    def _builtin(self, name: str, args: List[Value], ctx: ExecutionContext) -> Value:
        if len(args) != 1:
            log.warning("OBS-R006: %s() expects 1 argument, got %d", name, len(args))
            return "$false"
        target = stringify(args[0])
        if name == "find_client":
            client = ctx.host.find_client(target)
            return EntityRef(VarKind.CLIENT, client.name) if client else "$false"
        if name == "find_channel":
            channel = ctx.host.find_channel(target)
            return EntityRef(VarKind.CHANNEL, channel.name) if channel else "$false"
        server = ctx.host.find_server(target)
        return server.name if server else "$false"

    # -- host declarations --------------------------------------------------

    def _capability(self, action: ast_nodes.CapabilityAction, ctx: ExecutionContext) -> ControlFlow:
        if action.name not in self.capabilities:
            self.capabilities.append(action.name)
        return NORMAL

    def _isupport(self, action: ast_nodes.IsupportAction, ctx: ExecutionContext) -> ControlFlow:
        value = None
        if action.value is not None:
            value = self.substituter.substitute(action.value, ctx)
            if value == SYNTAX_ERROR:
                log.error("OBS-R002: Syntax error in isupport %s; action skipped", action.token)
                return NORMAL
        self.isupport[action.token] = value
        ctx.host.add_isupport(action.token, value)
        return NORMAL
