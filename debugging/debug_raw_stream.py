import os

import dotenv
from ssestream import HttpConfig, SSEHttpClient

dotenv.load_dotenv()

config = HttpConfig.from_env()
client = SSEHttpClient(config=config)
path = os.getenv("SSESTREAM_DEBUG_PATH", "/")

with client.stream("GET", path) as stream:
    for i, payload in enumerate(stream):
        print("i=", i, "type=", type(payload))
        print("repr=", repr(payload))

        if i >= 30:
            break

    err = stream.err()
    if err is not None:
        print("stream error:", repr(err))

client.close()
