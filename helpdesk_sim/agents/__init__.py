"""
Simulated resolvers

- AutonomousAIResolver: AI that claims and solves tickets on its own
- DelegateResolver: colleagues taking over delegated tickets
- AIAssistant: knowledge-base advice on request
"""
from helpdesk_sim.agents.autonomous_ai import AutonomousAIResolver
from helpdesk_sim.agents.delegate import DelegateResolver, DELEGATE_KB_REF
from helpdesk_sim.agents.assistant import AIAssistant

__all__ = [
    "AutonomousAIResolver",
    "DelegateResolver",
    "DELEGATE_KB_REF",
    "AIAssistant",
]
