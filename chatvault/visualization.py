"""
Visualization functions for chat data.

Provides plotting using plotly. Every function returns the figure and
optionally writes it to a standalone HTML file.
"""

import logging
from typing import List, Optional

import plotly.graph_objects as go  # type: ignore[import-untyped]

from chatvault.analysis import monthly_message_counts
from chatvault.ingest.models import Contact, Message

logger = logging.getLogger(__name__)


def _write(fig: go.Figure, output_file: Optional[str]) -> None:
    if output_file:
        fig.write_html(output_file)
        logger.info(f"Wrote chart to {output_file}")


def plot_messages_over_time(
    messages: List[Message],
    output_file: Optional[str] = None,
    title: str = "Messages per month",
) -> go.Figure:
    """
    Plot message frequency per month.

    Args:
        messages: Messages to count (any order).
        output_file: Optional HTML file path to save the plot.
        title: Chart title.

    Returns:
        The plotly figure (empty when there are no messages).
    """
    counts = monthly_message_counts(messages)
    fig = go.Figure(
        data=[go.Bar(x=list(counts.keys()), y=list(counts.values()), name="messages")]
    )
    fig.update_layout(title=title, xaxis_title="Month", yaxis_title="Messages")
    _write(fig, output_file)
    return fig


def plot_top_contacts(
    contacts: List[Contact],
    output_file: Optional[str] = None,
    title: str = "Top contacts",
) -> go.Figure:
    """
    Plot message counts per contact as a horizontal bar chart.

    Args:
        contacts: Contacts to plot, in the order they should appear.
        output_file: Optional HTML file path to save the plot.
        title: Chart title.
    """
    fig = go.Figure(
        data=[
            go.Bar(
                x=[contact.message_count for contact in contacts],
                y=[contact.label for contact in contacts],
                orientation="h",
                text=[contact.platforms for contact in contacts],
            )
        ]
    )
    fig.update_layout(title=title, xaxis_title="Messages", yaxis={"autorange": "reversed"})
    _write(fig, output_file)
    return fig
