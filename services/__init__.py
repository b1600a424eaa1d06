"""Result lifecycle and scoring core: pure scoring rules plus the services that
store canonical results, govern their lock state, audit changes and rebuild
pool standings."""
