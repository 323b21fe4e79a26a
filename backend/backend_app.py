import gzip

from fastapi import FastAPI, Request, Response

app = FastAPI(title="Demo Origin App")

@app.get("/")
def home():
    return {"status": "ok", "message": "Hello from origin"}

@app.get("/auth_check")
def auth_check():
    return {"status": "ok", "message": "nothing to see here"}

@app.get("/compressed")
def compressed():
    response = Response(
        content=gzip.compress(b"hello from origin"),
        media_type="text/plain",
        headers={"Content-Encoding": "gzip"},
    )
    response.set_cookie("session", "abc")
    response.set_cookie("theme", "dark")
    return response

@app.api_route("/echo/{rest:path}", methods=["GET", "POST", "PUT", "DELETE"])
async def echo(rest: str, request: Request):
    body = await request.body()
    # scope values: request.url re-parses a decoded "?" as the query
    return {
        "method": request.method,
        "path": request.scope["path"],
        "query": request.scope["query_string"].decode("latin-1"),
        "body": body.decode("utf-8", errors="ignore"),
    }
