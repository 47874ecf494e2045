import asyncio
import json
import sys
import urllib.parse
import wave

import websockets

CHUNK_FRAMES = 4096


async def main(wav_path: str):
    query = urllib.parse.urlencode({"role": "Backend Engineer"})
    url = f"ws://127.0.0.1:9010/ws/interview?{query}"
    async with websockets.connect(url) as ws:
        await ws.send(json.dumps({"type": "start_interview"}))

        async def printer():
            async for raw in ws:
                msg = json.loads(raw)
                print(msg.get("type"), "|", msg.get("text", ""))

        printer_task = asyncio.create_task(printer())
        with wave.open(wav_path, "rb") as reader:
            while True:
                frames = reader.readframes(CHUNK_FRAMES)
                if not frames:
                    break
                await ws.send(frames)
                await asyncio.sleep(0.25)

        await asyncio.sleep(15)
        await ws.send(json.dumps({"type": "stop"}))
        await printer_task

asyncio.run(main(sys.argv[1]))
