"""
Static sample events, served when no provider returns anything.
"""
from models import Event

TICKETMASTER_IMAGE = (
    "https://s1.ticketm.net/dam/a/1f6/0e4fe8ee-488a-46ba-9d6e-717fde4841f6_1339761_RETINA_PORTRAIT_16_9.jpg"
)
EDMTRAIN_IMAGE = "https://edmtrain-public.s3.us-east-2.amazonaws.com/img/logos/edmtrain-logo-tag.png"

SAMPLE_EVENTS = [
    Event(
        id="ticketmaster-12345",
        name="House & Techno Night",
        venue="CODA",
        city="Toronto",
        date="2025-05-03",
        time="22:00:00",
        genres=["house", "techno"],
        image=TICKETMASTER_IMAGE,
        url="https://www.ticketmaster.ca/electronic-dance-music-tickets/category/10001",
        source="ticketmaster_sample",
        taste_score=85,
    ),
    Event(
        id="ticketmaster-23456",
        name="Deep House Sessions",
        venue="Rebel",
        city="Toronto",
        date="2025-05-10",
        time="21:00:00",
        genres=["deep house"],
        image=TICKETMASTER_IMAGE,
        url="https://www.ticketmaster.ca/club-passes-tickets/category/10007",
        source="ticketmaster_sample",
        taste_score=80,
    ),
    Event(
        id="ticketmaster-34567",
        name="Electronic Music Festival",
        venue="Echo Beach",
        city="Toronto",
        date="2025-05-17",
        time="16:00:00",
        genres=["electronic", "dance"],
        image=TICKETMASTER_IMAGE,
        url="https://www.ticketmaster.ca/music-festivals-tickets/category/10005",
        source="ticketmaster_sample",
        taste_score=75,
    ),
    Event(
        id="edmtrain-12345",
        name="Armin van Buuren",
        venue="Rebel",
        city="Toronto",
        date="2025-05-05",
        time="22:00:00",
        genres=["trance", "progressive trance"],
        artists=["Armin van Buuren"],
        image=EDMTRAIN_IMAGE,
        url="https://edmtrain.com/toronto",
        source="edmtrain_sample",
        taste_score=88,
    ),
    Event(
        id="edmtrain-23456",
        name="Deadmau5 with 2 more",
        venue="CODA",
        city="Toronto",
        date="2025-05-12",
        time="21:00:00",
        genres=["progressive house", "electro house", "techno"],
        artists=["Deadmau5"],
        image=EDMTRAIN_IMAGE,
        url="https://edmtrain.com/toronto",
        source="edmtrain_sample",
        taste_score=82,
    ),
    Event(
        id="edmtrain-34567",
        name="Above & Beyond",
        venue="Danforth Music Hall",
        city="Toronto",
        date="2025-05-19",
        time="20:00:00",
        genres=["trance", "progressive house"],
        artists=["Above & Beyond"],
        image=EDMTRAIN_IMAGE,
        url="https://edmtrain.com/toronto",
        source="edmtrain_sample",
        taste_score=78,
    ),
]


def sample_events() -> list[Event]:
    return list(SAMPLE_EVENTS)
