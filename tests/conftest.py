"""
PURPOSE: Pytest fixtures for pinegraph compiler tests.

Provides shared test data including:
- Test configuration settings
- The standard function registry and a compiler built on it
- Node and edge factories
- Ready-made strategy graphs (RSI mean reversion, MACD trend)
"""

import pytest

from pinegraph.compiler.generator import StrategyCompiler
from pinegraph.compiler.registry import FunctionRegistry
from pinegraph.config.settings import Settings
from pinegraph.schemas.graph import Edge, Node


@pytest.fixture
def test_settings():
    """
    PURPOSE: Settings override with test values.

    Returns:
        Settings: Configuration object with a fixed title and debug logging.
    """
    return Settings(
        PINE_VERSION=5,
        STRATEGY_TITLE="Test Strategy",
        INITIAL_CAPITAL=10000.0,
        DEFAULT_QTY_PERCENT=10.0,
        COMMISSION_PERCENT=0.1,
        EMIT_MARKERS=True,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def registry():
    """Standard indicator/comparator registry."""
    return FunctionRegistry.default()


@pytest.fixture
def compiler(registry, test_settings):
    """Compiler sharing the registry fixture."""
    return StrategyCompiler(registry=registry, settings=test_settings)


@pytest.fixture
def make_node():
    """
    PURPOSE: Factory for nodes.

    Returns:
        Callable: make_node(id, kind, label=None, **config) -> Node
    """
    def _make(node_id, kind, label=None, **config):
        return Node(id=node_id, kind=kind, label=label if label is not None else node_id, config=config)

    return _make


@pytest.fixture
def make_indicator():
    """
    PURPOSE: Factory for indicator nodes.

    Returns:
        Callable: make_indicator(id, indicator_id, label=None, **parameters) -> Node
    """
    def _make(node_id, indicator_id, label=None, **parameters):
        return Node(
            id=node_id,
            kind="indicator",
            label=label if label is not None else indicator_id.upper(),
            config={"indicatorId": indicator_id, "parameters": parameters},
        )

    return _make


@pytest.fixture
def make_edge():
    """
    PURPOSE: Factory for edges.

    Returns:
        Callable: make_edge(source, target) -> Edge with id "source->target"
    """
    def _make(source, target):
        return Edge(id=f"{source}->{target}", source=source, target=target)

    return _make


@pytest.fixture
def market_data():
    """Single data-source node."""
    return Node(id="data", kind="data-source", label="Market Data", config={"symbol": "BTCUSDT"})


@pytest.fixture
def rsi_strategy(market_data, make_indicator, make_node, make_edge):
    """
    PURPOSE: RSI mean-reversion graph.

    data -> rsi -> (oversold -> buy, overbought -> sell), plus a stop-loss node.

    Returns:
        tuple: (nodes, edges)
    """
    nodes = [
        market_data,
        make_indicator("rsi", "rsi", label="RSI", period=14),
        make_node("oversold", "condition", label="RSI Oversold", operator="less_than", threshold=30),
        make_node("overbought", "condition", label="RSI Overbought", operator="greater_than", threshold=70),
        make_node("buy", "action", label="Buy Order", orderType="market", quantity="25%"),
        make_node("sell", "action", label="Sell Order", orderType="market", quantity="100%"),
        make_node("sl", "risk", label="Stop Loss", stopLoss=2, takeProfit=5),
    ]
    edges = [
        make_edge("data", "rsi"),
        make_edge("rsi", "oversold"),
        make_edge("rsi", "overbought"),
        make_edge("oversold", "buy"),
        make_edge("overbought", "sell"),
    ]
    return nodes, edges


@pytest.fixture
def macd_strategy(market_data, make_indicator, make_node, make_edge):
    """
    PURPOSE: MACD trend graph with a Bollinger Bands overlay.

    Returns:
        tuple: (nodes, edges)
    """
    nodes = [
        market_data,
        make_indicator("macd", "macd", label="MACD", fastLength=12, slowLength=26, signalLength=9),
        make_indicator("bb", "bb", label="Bollinger Bands", period=20, mult=2.0),
        make_node("cross", "condition", label="MACD Cross Up", operator="crosses_above", threshold=0),
        make_node("entry", "action", label="Entry Long", orderType="market", quantity=1),
    ]
    edges = [
        make_edge("data", "macd"),
        make_edge("data", "bb"),
        make_edge("macd", "cross"),
        make_edge("cross", "entry"),
    ]
    return nodes, edges
