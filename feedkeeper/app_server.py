from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import AsyncIterator, Dict, List
import os
import uvicorn

from feedkeeper.feed_utils import configure_logging, load_config, open_repository, simplify_registered_feeds
from feedkeeper.main.config import ConfigurationError
from feedkeeper.main.store import StoreReadError
from feedkeeper.main.tools.registry import FeedRepository

app = FastAPI(
    title="FeedKeeper API",
    description="Manage YouTube channel feeds and their Discord channels stored in a GitHub-hosted feed.json.",
    version="0.1.0",
    docs_url="/docs",        # Swagger UI
    redoc_url="/redoc",      # ReDoc UI
    openapi_url="/openapi.json",
)


class DeleteFeedsRequest(BaseModel):
    urls: List[str]


class RawContentRequest(BaseModel):
    content: str


class NotificationTargetRequest(BaseModel):
    channel_id: str
    target: str


async def get_repository() -> AsyncIterator[FeedRepository]:
    async with open_repository() as repository:
        yield repository


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(StoreReadError)
async def store_read_error_handler(request: Request, exc: StoreReadError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.get("/", tags=["Root"], summary="API root")
async def read_root():
    return {"message": "Welcome to the FeedKeeper FastAPI server!"}


@app.get(
    path="/listFeeds",
    tags=["Feed"],
    summary="List feeds",
    description="Return every stored channel with its feed URL, name and Discord channel.",
)
async def list_feeds(repository: FeedRepository = Depends(get_repository)) -> List[Dict[str, str]]:
    items = await repository.list_feeds()
    return [item.to_dict() for item in items]


@app.get("/rawContent", tags=["Feed"], summary="Raw feed.json",
         description="Return the exact current text of feed.json for direct editing.")
async def get_raw_content(repository: FeedRepository = Depends(get_repository)) -> Dict[str, str]:
    return {"content": await repository.get_raw_content()}


@app.put("/rawContent", tags=["Feed"], summary="Replace feed.json",
         description="Validate the whole document and commit it if every entry is well formed.")
async def replace_raw_content(
    body: RawContentRequest, repository: FeedRepository = Depends(get_repository)
) -> dict:
    return await repository.replace_raw_content(body.content)


@app.post("/addFeed", tags=["Feed"], summary="Add a channel",
          description="Accepts a feed URL, channel URL, @handle, video URL or channel ID.")
async def add_feed(user_input: str, repository: FeedRepository = Depends(get_repository)) -> dict:
    return await repository.add_feed(user_input)


@app.post("/deleteFeeds", tags=["Feed"], summary="Delete channels",
          description="Remove the channels behind the given feed URLs; unknown URLs are ignored.")
async def delete_feeds(
    body: DeleteFeedsRequest, repository: FeedRepository = Depends(get_repository)
) -> dict:
    return await repository.delete_feeds(body.urls)


@app.post("/notificationTarget", tags=["Feed"], summary="Set Discord channel",
          description='Accepts "0", a numeric Discord channel ID or "#name-id".')
async def update_notification_target(
    body: NotificationTargetRequest, repository: FeedRepository = Depends(get_repository)
) -> dict:
    return await repository.update_notification_target(body.channel_id, body.target)


@app.post(
    "/simplifyFeeds",
    tags=["AI"],
    summary="Suggest simplifications",
    description="Ask the LLM for duplicate, consolidation and inactivity suggestions over all feeds.",
)
async def simplify_feeds(repository: FeedRepository = Depends(get_repository)) -> Dict[str, List[str]]:
    return {"suggestions": await simplify_registered_feeds(repository)}


def main():
    configure_logging()
    # Fail fast on missing GitHub coordinates.
    load_config()
    uvicorn.run(
        app,
        host=os.getenv("FEEDKEEPER_HOST", "127.0.0.1"),
        port=int(os.getenv("FEEDKEEPER_PORT", "8090")),
    )

if __name__ == "__main__":
    main()
