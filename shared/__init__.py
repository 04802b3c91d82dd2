"""Models, storage and HTTP layer shared by the library server and the player."""
