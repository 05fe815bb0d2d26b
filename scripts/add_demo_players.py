import argparse
import os
import time

import socketio

# Configuration
SERVER_URL = os.getenv("SERVER_URL", "http://127.0.0.1:5000")
DEMO_PLAYERS = ["Player1", "Player2", "Player3", "Player4", "Player5"]


# --- Main Script ---
def add_demo_players(room_code, names, server_url=SERVER_URL):
    """
    Connects one Socket.IO client per name and joins each to the room's lobby.
    """
    clients = []

    for name in names:
        try:
            sio = socketio.Client()

            def make_handlers(client, player_name):
                @client.on("receive_role")
                def receive_role(data):
                    print(f"[{player_name}] Role: {data.get('role')}")

                @client.on("join_error")
                def join_error(data):
                    print(f"[{player_name}] Error: {data.get('message')}")

                @client.on("kicked")
                def kicked(data):
                    print(f"[{player_name}] Kicked from room {data.get('roomId')}")

            make_handlers(sio, name)
            sio.connect(server_url, transports=["websocket"])
            result = sio.call("join_room", {"roomId": room_code, "name": name}, timeout=10)
            if result and result.get("ok"):
                print(f"[{name}] Joined room {result.get('roomId')} ({len(result.get('players', []))} players)")
                clients.append(sio)
            else:
                print(f"[{name}] Join rejected: {result.get('error') if result else 'no answer'}")
                sio.disconnect()
            time.sleep(0.5)  # Stagger connections slightly

        except Exception as e:
            print(f"Failed to create client for {name}: {e}")

    print(f"Added {len(clients)} demo players to room {room_code}.")
    print("Leave this running; Ctrl+C disconnects them (they stay on the roster as offline).")

    # Keep the script running to maintain connections
    try:
        while True:
            for sio in clients:
                sio.emit("heartbeat")
            time.sleep(15)
    except KeyboardInterrupt:
        print("\nDisconnecting clients...")
        for sio in clients:
            sio.disconnect()
        print("All clients disconnected.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Fill a lobby with demo players")
    parser.add_argument("room_code")
    parser.add_argument("--count", type=int, default=len(DEMO_PLAYERS))
    parser.add_argument("--server", default=SERVER_URL)
    args = parser.parse_args()
    names = [f"Player{i + 1}" for i in range(args.count)]
    add_demo_players(args.room_code, names, args.server)
