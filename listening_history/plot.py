"""Plotly figures for the numeric series produced by the core."""
import re
import webbrowser
from pathlib import Path
from typing import Iterable, Optional, Union

import pandas as pd
import plotly.graph_objects as go
import plotly.io as pio

from listening_history.constants import PLOT_CONSTANTS
from listening_history.events import EventStore
from listening_history.timeseries import Granularity, Point, reindexed, to_series

# Set default plotly theme to dark
pio.templates.default = PLOT_CONSTANTS['TEMPLATE']

Series = Union[pd.Series, Iterable[Point]]


def _as_series(points: Series, name: Optional[str] = None) -> pd.Series:
    if isinstance(points, pd.Series):
        return points
    return to_series(points, name=name)


def _style(fig: go.Figure, title: str, yaxis_title: str) -> go.Figure:
    fig.update_layout(
        title={
            'text': title,
            'x': 0.5,
            'xanchor': 'center',
            'font': {'size': 20}
        },
        xaxis_title="Date",
        yaxis_title=yaxis_title,
        height=PLOT_CONSTANTS['HEIGHT'],
        template=PLOT_CONSTANTS['TEMPLATE'],
        hovermode='x unified',
        plot_bgcolor=PLOT_CONSTANTS['BACKGROUND'],
        paper_bgcolor=PLOT_CONSTANTS['BACKGROUND'],
    )
    return fig


def absolute_figure(points: Series, title: str, yaxis_title: str = "Plays") -> go.Figure:
    """Line plot of an absolute (per-bucket or cumulative) series."""
    series = _as_series(points, title)
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=series.index,
        y=series.values,
        mode='lines',
        name=title,
        line=dict(color=PLOT_CONSTANTS['LINE_COLOR'], width=2),
        hovertemplate='<b>%{x}</b><br>%{y:,.0f}<extra></extra>'
    ))
    return _style(fig, f"{title} | absolute", yaxis_title)


def relative_figure(points: Series, title: str) -> go.Figure:
    """Line plot of a relative series, shown in percent."""
    series = _as_series(points, title) * 100
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=series.index,
        y=series.values,
        mode='lines',
        name=title,
        line=dict(color=PLOT_CONSTANTS['LINE_COLOR'], width=2),
        hovertemplate='<b>%{x}</b><br>%{y:.2f}%<extra></extra>'
    ))
    fig = _style(fig, f"{title} | relative", "Share of listening (%)")
    fig.update_yaxes(range=[0, 100])
    return fig


def daily_minutes_figure(store: EventStore, ema_span: Optional[int] = None) -> go.Figure:
    """Daily minutes streamed over the whole history, optionally with an EMA line."""
    fig = go.Figure()
    df = store.to_frame()
    if df.empty:
        return _style(fig, "No data available.", "Minutes Streamed")

    df['minutes_played'] = df['ms_played'] / (1000 * 60)
    daily_minutes = df.groupby(df['timestamp'].dt.normalize())['minutes_played'].sum()
    daily_minutes = reindexed(daily_minutes, Granularity.DAY)

    fig.add_trace(go.Scatter(
        x=daily_minutes.index,
        y=daily_minutes.values,
        mode='lines',
        name='Daily Minutes',
        line=dict(color='#888888' if ema_span else PLOT_CONSTANTS['LINE_COLOR'], width=1),
        hovertemplate='<b>%{x}</b><br>Minutes: %{y:.1f}<extra></extra>'
    ))
    title_text = "Daily Minutes Streamed"
    if ema_span:
        fig.add_trace(go.Scatter(
            x=daily_minutes.index,
            y=daily_minutes.ewm(span=ema_span).mean().values,
            mode='lines',
            name=f'{ema_span}-day EMA',
            line=dict(color=PLOT_CONSTANTS['LINE_COLOR'], width=2),
            hovertemplate=f'<b>%{{x}}</b><br>{ema_span}-day EMA: %{{y:.1f}}<extra></extra>'
        ))
        title_text = f"Daily Minutes Streamed ({ema_span}-day EMA)"
    return _style(fig, title_text, "Minutes Streamed")


def normalize_filename(name: str) -> str:
    """Strip characters that are not allowed in file names."""
    return re.sub(r'[<>:"/\\|?*\x00-\x1f]', '_', name).strip() or "plot"


def write_plot(fig: go.Figure, name: str, directory: Union[str, Path, None] = None) -> Path:
    """Write ``fig`` as a standalone HTML file and return its path."""
    directory = Path(directory or PLOT_CONSTANTS['OUTPUT_DIR'])
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{normalize_filename(name)}.html"
    fig.write_html(str(path))
    return path


def open_plot(path: Path) -> None:
    webbrowser.open(path.resolve().as_uri())
