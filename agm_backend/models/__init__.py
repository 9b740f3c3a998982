from agm_backend.models.building import Building, BuildingUser
from agm_backend.models.meeting import Meeting, MeetingStatus
from agm_backend.models.participant import MeetingParticipant, ParticipantRole
from agm_backend.models.link import MeetingLink

__all__ = [
    "Building",
    "BuildingUser",
    "Meeting",
    "MeetingStatus",
    "MeetingParticipant",
    "ParticipantRole",
    "MeetingLink",
]
