import argparse
import logging
import os
import sys
import time
import wave

import dotenv

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from speech_adapter import (
    ErrorEvent,
    FinalResultEvent,
    PartialResultEvent,
    ServiceConfig,
    SpeechToTextService,
    StateChangedEvent,
)

dotenv.load_dotenv()

CHUNK_FRAMES = 1600  # 100ms at 16kHz


def process_event(event):
    if isinstance(event, PartialResultEvent):
        print(f"... {event.transcript}", end="\r", flush=True)

    elif isinstance(event, FinalResultEvent):
        print(event.transcript)

    elif isinstance(event, ErrorEvent):
        logging.error(f"Recognition error: {event.message}")

    elif isinstance(event, StateChangedEvent):
        logging.info(f"Channel is {event.state.value}")


def main():
    parser = argparse.ArgumentParser(description="Transcribe a 16-bit mono WAV file over the streaming channel")
    parser.add_argument("wav_file")
    parser.add_argument("--model", default=None)
    parser.add_argument("--realtime", action="store_true", help="Pace the audio like a live microphone")
    args = parser.parse_args()

    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=logging.INFO,
    )

    service = SpeechToTextService(ServiceConfig.from_env())

    with wave.open(args.wav_file, "rb") as wf:
        rate = wf.getframerate()
        channel = service.recognize_using_websocket(
            on_event=process_event,
            content_type=f"audio/l16;rate={rate}",
            interim_results=True,
            model=args.model,
        )

        with channel:
            # Writes are queued until the handshake completes, and the queue is bounded
            if not channel.wait_open(timeout=30):
                logging.error(f"Recognition channel did not open (state: {channel.state.value})")
                return

            while True:
                data = wf.readframes(CHUNK_FRAMES)
                if not data:
                    break
                channel.write(data)
                if args.realtime:
                    time.sleep(CHUNK_FRAMES / rate)


if __name__ == "__main__":
    main()
