from pydantic import BaseModel


class PublicTimelineRequest(BaseModel):
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float
    zoom_level: float = 0
