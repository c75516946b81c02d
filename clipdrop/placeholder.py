from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

app = FastAPI(title="ClipDrop placeholder")


@app.get("/", response_class=PlainTextResponse)
async def root():
    return "Server is running on Fly.io!"
