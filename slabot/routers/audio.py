from fastapi import APIRouter, Depends, HTTPException, Response

from slabot.services.container import Services, get_services

router = APIRouter()


# /audio/{id} and /audio/{id}.mp3 resolve to the same blob
@router.get("/audio/{audio_id}")
def get_audio(audio_id: str, services: Services = Depends(get_services)):
    data = services.audio_store.fetch(audio_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Audio not found or expired")

    return Response(
        content=data,
        media_type="audio/mpeg",
        headers={"Content-Disposition": 'inline; filename="audio.mp3"'},
    )
