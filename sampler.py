import time
from pathlib import Path
from typing import Optional

import config_loader
from fusion import ActiveSonar, DopplerState, SonarChannel

ARROWS = {
    DopplerState.APPROACHING: ">> approaching",
    DopplerState.RECEDING: "<< receding",
    DopplerState.NONE: "",
}


def live_sample(config_path: Optional[Path] = None):
    """Print live sonar readings until Ctrl+C."""
    config = config_loader.load_config(config_path)
    channel = SonarChannel(config["sonar"]["queue_size"])
    sonar = ActiveSonar(config, callback=channel.put)

    print("\nLive sonar (Ctrl+C to stop)...")
    sonar.start()
    if not sonar.is_available:
        print("Sonar unavailable - check audio devices (python3 health_check.py)")
        sonar.stop()
        return

    try:
        while sonar.is_available:
            for reading in channel.drain():
                print(f"echo: {reading.amplitude:12.1f} | {ARROWS[reading.doppler]}")
            time.sleep(0.1)
    except KeyboardInterrupt:
        print("\nStopped.\n")
    finally:
        sonar.stop()
