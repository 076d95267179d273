from copilot_sessions.app import main

if __name__ == "__main__":
    main()
