"""
PURPOSE: Tests for the compilation driver.

Tests the end-to-end contract of StrategyCompiler and the module-level entry
points:
- Success path and result metadata
- Fallback script on validation failure
- Exception safety
- Determinism and topological line order
- Canvas JSON intake
"""

import pytest

from pinegraph import compile_canvas, compile_strategy, validate_strategy
from pinegraph.compiler.generator import check_structure
from pinegraph.compiler.validator import CIRCULAR_DEPENDENCY, MISSING_DATA_SOURCE, NO_ACTIONS
from pinegraph.config.settings import Settings


class TestCompileSuccess:
    """Test successful compilations."""

    def test_rsi_strategy(self, compiler, rsi_strategy):
        result = compiler.compile(*rsi_strategy)
        assert result.success is True
        assert result.errors == []
        assert result.warnings == []
        assert "//@version=5" in result.code
        assert "strategy(" in result.code
        assert check_structure(result.code) == []

    def test_metadata(self, compiler, rsi_strategy):
        result = compiler.compile(*rsi_strategy)
        metadata = result.metadata
        assert metadata.node_count == 7
        assert metadata.edge_count == 5
        assert metadata.indicator_count == 1
        assert metadata.condition_count == 2
        assert metadata.action_count == 2
        assert metadata.variable_count == 7
        assert metadata.code_lines == len(result.code.splitlines())
        assert metadata.generated_at

    def test_warnings_do_not_block(self, compiler, market_data, make_indicator, make_edge):
        nodes = [market_data, make_indicator("rsi", "rsi", period=14)]
        result = compiler.compile(nodes, [make_edge("data", "rsi")])
        assert result.success is True
        assert result.warnings == [NO_ACTIONS]

    def test_inputs_are_not_mutated(self, compiler, rsi_strategy):
        nodes, edges = rsi_strategy
        before = [node.model_dump() for node in nodes]
        compiler.compile(nodes, edges)
        assert [node.model_dump() for node in nodes] == before


class TestCompileFailure:
    """Test the fallback path."""

    def test_missing_data_source_returns_fallback(self, compiler, make_indicator):
        """Test a graph without a data source returns exactly the fallback script."""
        result = compiler.compile([make_indicator("rsi", "rsi", period=14)], [])
        assert result.success is False
        assert MISSING_DATA_SOURCE in result.errors
        assert result.code == compiler.emitter.emit_fallback(result.errors)

    def test_cycle_returns_single_error(self, compiler, market_data, make_indicator, make_edge):
        nodes = [market_data, make_indicator("a", "sma", period=3), make_indicator("b", "ema", period=3)]
        edges = [make_edge("data", "a"), make_edge("a", "b"), make_edge("b", "a")]
        result = compiler.compile(nodes, edges)
        assert result.success is False
        assert result.errors == [CIRCULAR_DEPENDENCY]
        assert f"// - {CIRCULAR_DEPENDENCY}" in result.code

    def test_failure_keeps_warnings_and_metadata(self, compiler, make_indicator):
        result = compiler.compile([make_indicator("rsi", "rsi", period=14)], [])
        assert NO_ACTIONS in result.warnings
        assert result.metadata.node_count == 1
        assert result.metadata.variable_count == 0
        assert result.metadata.code_lines == len(result.code.splitlines())

    def test_unexpected_exception_is_contained(self, compiler):
        """Test garbage input becomes an error result instead of raising."""
        result = compiler.compile([1, 2, 3], [])
        assert result.success is False
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Code generation failed:")
        assert result.code == compiler.emitter.emit_fallback(result.errors)

    def test_emitter_failure_is_contained(self, compiler, rsi_strategy, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(compiler.emitter, "emit", explode)
        result = compiler.compile(*rsi_strategy)
        assert result.success is False
        assert result.errors == ["Code generation failed: boom"]

    def test_malformed_output_triggers_fallback(self, compiler, rsi_strategy, monkeypatch):
        """Test the structural pass rejects unbalanced code."""
        monkeypatch.setattr(
            compiler.emitter, "emit", lambda *args, **kwargs: '//@version=5\nstrategy("x"\n'
        )
        result = compiler.compile(*rsi_strategy)
        assert result.success is False
        assert result.errors == ["Unmatched parentheses in generated code"]


class TestDeterminism:
    """Test output stability."""

    def test_identical_input_identical_code(self, compiler, macd_strategy):
        first = compiler.compile(*macd_strategy)
        second = compiler.compile(*macd_strategy)
        assert first.code == second.code

    def test_fresh_compilers_agree(self, registry, test_settings, rsi_strategy):
        from pinegraph.compiler.generator import StrategyCompiler

        a = StrategyCompiler(registry=registry, settings=test_settings).compile(*rsi_strategy)
        b = StrategyCompiler(settings=test_settings).compile(*rsi_strategy)
        assert a.code == b.code

    def test_no_state_leaks_between_calls(self, compiler, rsi_strategy, macd_strategy):
        """Test a compile does not influence the next one."""
        baseline = compiler.compile(*rsi_strategy).code
        compiler.compile(*macd_strategy)
        compiler.compile([], [])
        assert compiler.compile(*rsi_strategy).code == baseline


class TestTopologicalLineOrder:
    """Test producer lines precede consumer lines."""

    def test_chain_in_reverse_input_order(self, compiler, market_data, make_indicator, make_node, make_edge):
        nodes = [
            make_node("c", "condition", label="Signal", operator="greater_than", threshold=0),
            make_node("m", "math", label="Gap", operation="subtract", value=1),
            make_indicator("s", "sma", label="Slow", period=30),
            make_indicator("f", "ema", label="Fast", period=10),
            market_data,
        ]
        edges = [
            make_edge("data", "f"),
            make_edge("f", "s"),
            make_edge("s", "m"),
            make_edge("m", "c"),
        ]
        result = compiler.compile(nodes, edges)
        assert result.success, result.errors
        lines = result.code.splitlines()
        positions = [
            lines.index("fast = ta.ema(close, ema_period)"),
            lines.index("slow = ta.sma(fast, sma_period)"),
            lines.index("gap = slow - 1"),
            lines.index("signal = gap > 0"),
        ]
        assert positions == sorted(positions)


class TestStructureCheck:
    """Test the final sanity pass."""

    def test_balanced_code(self):
        assert check_structure('//@version=5\nstrategy("a")\nplot(close)\n') == []

    def test_brackets_inside_strings_and_comments_ignored(self):
        code = '//@version=5\nstrategy("(unclosed")\n// note: [ignored\nplot(close)\n'
        assert check_structure(code) == []

    def test_missing_header_tokens(self):
        assert check_structure("plot(close)") == [
            "Missing Pine Script version declaration",
            "Missing strategy declaration",
        ]

    def test_unbalanced(self):
        assert check_structure('//@version=5\nstrategy("a"))') == [
            "Unmatched parentheses in generated code"
        ]
        assert check_structure('//@version=5\nstrategy("a")\n[a, b) = f()') == [
            "Unmatched parentheses in generated code"
        ]


class TestEntryPoints:
    """Test module-level helpers."""

    def test_compile_strategy_with_settings(self, rsi_strategy):
        result = compile_strategy(*rsi_strategy, settings=Settings(STRATEGY_TITLE="Custom"))
        assert result.success is True
        assert 'strategy("Custom",' in result.code

    def test_validate_strategy(self, rsi_strategy, make_indicator):
        assert validate_strategy(*rsi_strategy).is_valid
        assert not validate_strategy([make_indicator("x", "rsi", period=14)], []).is_valid


class TestCompileCanvas:
    """Test compilation straight from canvas JSON records."""

    @pytest.fixture
    def canvas(self):
        nodes = [
            {"id": "data", "type": "input", "data": {"label": "Market Data", "config": {"symbol": "ETHUSDT"}}},
            {
                "id": "rsi",
                "type": "indicator",
                "data": {"label": "RSI", "config": {"indicatorId": "rsi"}, "parameters": {"period": 14}},
            },
            {
                "id": "low",
                "type": "condition",
                "data": {"label": "Oversold", "config": {"operator": "less_than", "threshold": 30}},
            },
            {
                "id": "buy",
                "type": "action",
                "data": {"label": "Buy", "config": {"orderType": "market", "quantity": "10%"}},
            },
        ]
        edges = [
            {"id": "e1", "source": "data", "target": "rsi"},
            {"source": "rsi", "target": "low"},
            {"source": "low", "target": "buy"},
        ]
        return nodes, edges

    def test_canvas_compiles(self, compiler, canvas):
        result = compile_canvas(*canvas, compiler=compiler)
        assert result.success is True, result.errors
        assert "rsi_period = input.int(14" in result.code
        assert "oversold = rsi < 30" in result.code
        assert 'strategy.entry("buy", strategy.long, qty=strategy.equity * 0.1 / close)' in result.code

    def test_malformed_records_return_fallback(self, compiler):
        raw_nodes = [{"id": "", "type": "indicator"}, {"id": "x", "type": "teleporter"}, "junk"]
        result = compile_canvas(raw_nodes, [{"source": "x"}], compiler=compiler)
        assert result.success is False
        assert [e.split(":")[0] for e in result.errors] == [
            "Invalid node at position 0",
            "Invalid node at position 1",
            "Invalid node at position 2",
            "Invalid edge at position 0",
        ]
        assert result.code == compiler.emitter.emit_fallback(result.errors)
        assert result.metadata.node_count == 3
