"""
Colleague roster template

Sessions work on deep copies; the template itself is never mutated.
"""
from typing import List

from helpdesk_sim.models.schemas import Agent, AgentStatus

BASE_AGENTS = (
    Agent(id="bot1", name="Lukas Schneider", skill=0.9, trust=0.9,
          greeting="Hello! I'm on shift. Write if you need help."),
    Agent(id="bot2", name="Anna Müller", skill=0.9, trust=0.5,
          greeting="Hey. Lots of work..."),
    Agent(id="bot3", name="Jonas Weber", skill=0.9, trust=0.7,
          greeting="Good day, colleagues."),
    Agent(id="bot4", name="Felix Hoffmann", skill=0.9, trust=0.8,
          greeting="Morning! Ready to help."),
    Agent(id="bot5", name="Laura Schmidt", skill=0.9, trust=0.6,
          greeting="Hi there, what's the issue?"),
)


def fresh_roster() -> List[Agent]:
    """Session-scoped copy of the base roster, everyone online"""
    return [agent.model_copy(deep=True) for agent in BASE_AGENTS]


def set_all(agents: List[Agent], status: AgentStatus) -> None:
    for agent in agents:
        agent.status = status
